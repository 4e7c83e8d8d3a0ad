import argparse
import contextlib
import sys

import extractor
from completion import CompletionWorkflow
from schema import resolve_header


def parse_presets(pairs):
    """
    Turns ['Dept=CSE', 'Class=B.Tech'] into {'Department': 'CSE', 'Class': 'B.Tech'}.
    Field names go through the same synonym table as document headers.
    """
    presets = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise argparse.ArgumentTypeError(f"Expected FIELD=VALUE, got '{pair}'")
        key, value = pair.split("=", 1)
        target = resolve_header(key)
        if not target:
            raise argparse.ArgumentTypeError(f"Unknown field '{key}'")
        presets[target] = value.strip()
    return presets


def ask(prompt, default=""):
    suffix = f" [{default}]" if default not in ("", None) else ""
    answer = input(f"{prompt}{suffix}: ").strip()
    return answer or (default or "")


def answer_request(pending, presets, default_credits):
    """
    Collects one value per requested item, using presets before prompting.
    """
    values = {}
    if pending.kind == "required_fields":
        print(f"Missing required fields: {', '.join(pending.items)}")
        for field in pending.items:
            values[field] = presets.get(field) or ask(field)
    else:
        print(f"No credits found for {len(pending.items)} subjects.")
        for subject in pending.items:
            if default_credits is not None:
                values[subject] = default_credits
            else:
                values[subject] = ask(f"Credits for {subject}")
    return values


def run(argv=None):
    arg_parser = argparse.ArgumentParser(
        description="Convert a result PDF or CSV export into the canonical 12-column CSV."
    )
    arg_parser.add_argument("input", help="Path to a .pdf or .csv result file")
    arg_parser.add_argument("-o", "--output", help="Write CSV here instead of stdout")
    arg_parser.add_argument("--default-credits", help="Credits used for every subject lacking them")
    arg_parser.add_argument("--set", dest="presets", action="append", metavar="FIELD=VALUE",
                            help="Value for a missing field, e.g. --set Department=CSE (repeatable)")
    args = arg_parser.parse_args(argv)

    try:
        presets = parse_presets(args.presets)
    except argparse.ArgumentTypeError as e:
        arg_parser.error(str(e))

    # Pipeline diagnostics go to stderr so stdout carries only the CSV
    with contextlib.redirect_stdout(sys.stderr):
        result = extractor.main(args.input)
        if not result["success"]:
            print(f"Error: {result['error']}")
            return 1

        print(f"[INFO] {len(result['rows'])} rows via {result['source']}")

        workflow = CompletionWorkflow(default_credits=args.default_credits)
        pending = workflow.start(result["rows"])
        try:
            while pending is not None:
                pending = workflow.supply(answer_request(pending, presets, args.default_credits))
        except EOFError:
            print("Error: input ended before all missing values were supplied")
            return 1

        csv_text = workflow.to_csv()
    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as fh:
            fh.write(csv_text)
        print(f"Saved {len(workflow.rows)} rows to {args.output}", file=sys.stderr)
    else:
        sys.stdout.write(csv_text + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(run())
