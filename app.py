import os
import io
import uuid
from datetime import datetime, timedelta
from flask import Flask, render_template, request, flash, redirect, url_for, send_file
from werkzeug.utils import secure_filename

# Conversion pipeline
import extractor
from completion import CompletionWorkflow, CompletionError
from rows import to_xlsx
from schema import CANONICAL_FIELDS

# Flask application initialization
app = Flask(__name__)
app.secret_key = os.environ.get("EDUPARSE_SECRET_KEY", "eduparse-dev-key")

# Configuration for file uploads
app.config['UPLOAD_FOLDER'] = os.environ.get("EDUPARSE_UPLOAD_FOLDER", "uploads")
app.config['DEFAULT_CREDITS'] = os.environ.get("EDUPARSE_DEFAULT_CREDITS", "3")
app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get("EDUPARSE_MAX_UPLOAD_MB", "32")) * 1024 * 1024
app.config['STORE_TTL_MINUTES'] = int(os.environ.get("EDUPARSE_STORE_TTL_MINUTES", "60"))
app.config['STORE_MAX_ENTRIES'] = int(os.environ.get("EDUPARSE_STORE_MAX_ENTRIES", "50"))
os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

ALLOWED_EXTENSIONS = ('.pdf', '.csv')

# ---------------------------------------------------
# GLOBAL DATA STORE
# ---------------------------------------------------

# token -> {'workflow', 'filename', 'source', 'created'}; one entry per uploaded document
CONVERSION_STORE = {}

SOURCE_LABELS = {
    'delimited': 'CSV columns',
    'table': 'tabular layout',
    'pattern': 'pattern matching',
    'key_value': 'label/value lines',
}

# ---------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------

def get_conversion(token):
    """
    Looks up a stored conversion; flashes and returns None when the token is unknown.
    """
    entry = CONVERSION_STORE.get(token)
    if entry is None:
        flash("Session Expired: Please upload the file again.", "warning")
    return entry


def prune_store(now=None):
    """
    Drops conversions older than STORE_TTL_MINUTES, then the oldest ones
    beyond STORE_MAX_ENTRIES.
    """
    now = now or datetime.now()
    cutoff = now - timedelta(minutes=app.config['STORE_TTL_MINUTES'])
    for token in [t for t, e in CONVERSION_STORE.items() if e['created'] < cutoff]:
        del CONVERSION_STORE[token]

    overflow = len(CONVERSION_STORE) - app.config['STORE_MAX_ENTRIES']
    if overflow > 0:
        oldest = sorted(CONVERSION_STORE, key=lambda t: CONVERSION_STORE[t]['created'])[:overflow]
        for token in oldest:
            del CONVERSION_STORE[token]
        print(f"[DEBUG] Evicted {overflow} stored conversions")


def next_step(token):
    """
    Redirects to the completion form while input is pending, otherwise to the result page.
    """
    workflow = CONVERSION_STORE[token]['workflow']
    if workflow.is_complete:
        return redirect(url_for('result', token=token))
    return redirect(url_for('complete', token=token))


def download_name(entry, ext):
    base = os.path.splitext(entry['filename'])[0] or 'results'
    return f"eduparse_{base}_{entry['created']:%Y%m%d%H%M%S}.{ext}"

# ---------------------------------------------------
# CORE ROUTES
# ---------------------------------------------------

@app.route('/')
def home():
    """
    Renders the upload form.
    """
    return render_template('index.html',
                           fields=CANONICAL_FIELDS,
                           default_credits=app.config['DEFAULT_CREDITS'])


@app.route('/convert', methods=['POST'])
def convert():
    """
    Handles PDF/CSV upload, extracts candidate rows and opens a completion workflow.
    """
    if 'source_file' not in request.files:
        flash('System Error: File part not detected.', 'danger')
        return redirect(url_for('home'))

    file = request.files['source_file']
    if file.filename == '':
        flash('Action Required: Please choose a PDF or CSV file.', 'warning')
        return redirect(url_for('home'))

    stem, ext = os.path.splitext(file.filename)
    ext = ext.lower()
    if ext not in ALLOWED_EXTENSIONS:
        flash('Unsupported File: Please upload a .csv or .pdf file.', 'danger')
        return redirect(url_for('home'))
    # secure_filename drops non-ASCII names entirely; the extension is kept separately
    filename = (secure_filename(stem) or 'upload') + ext

    default_credits = request.form.get('default_credits', '').strip() or None

    file_path = os.path.join(app.config['UPLOAD_FOLDER'], f"{uuid.uuid4().hex}_{filename}")
    try:
        file.save(file_path)
        result = extractor.main(file_path)
    finally:
        # Uploaded files are never kept beyond the request
        if os.path.exists(file_path):
            try:
                os.remove(file_path)
                print(f"Cleanup Successful: Deleted {file_path}")
            except OSError as cleanup_error:
                print(f"Warning: Could not delete temporary file: {cleanup_error}")

    if not result['success']:
        flash(f"Parser Rejected: {result.get('error')}", "danger")
        return redirect(url_for('home'))

    workflow = CompletionWorkflow(default_credits=default_credits)
    workflow.start(result['rows'])

    token = uuid.uuid4().hex
    CONVERSION_STORE[token] = {
        'workflow': workflow,
        'filename': filename,
        'source': result['source'],
        'created': datetime.now(),
    }
    prune_store()

    flash(f"✅ Success: Extracted {len(result['rows'])} rows using "
          f"{SOURCE_LABELS.get(result['source'], result['source'])}.", "success")
    return next_step(token)


@app.route('/complete/<string:token>', methods=['GET', 'POST'])
def complete(token):
    """
    Shows the pending request (missing required fields or credits per subject)
    and merges the submitted answers into the rows.
    """
    entry = get_conversion(token)
    if entry is None:
        return redirect(url_for('home'))

    workflow = entry['workflow']
    if workflow.is_complete:
        return redirect(url_for('result', token=token))

    pending = workflow.pending
    if request.method == 'POST':
        # Form inputs are positional so subject names never need escaping
        values = {
            item: request.form.get(f"value_{i}", '').strip()
            for i, item in enumerate(pending.items)
        }
        try:
            workflow.supply(values)
        except CompletionError as e:
            flash(f"Completion Error: {str(e)}", "danger")
            return redirect(url_for('home'))

        if workflow.pending is not None and workflow.pending.kind == pending.kind:
            flash("Action Required: Please fill in every value.", "warning")
        return next_step(token)

    return render_template('complete.html',
                           token=token,
                           pending=pending,
                           fields=CANONICAL_FIELDS,
                           preview=pending.rows[:20],
                           total_rows=len(pending.rows),
                           default_credits=workflow.default_credits or '')


@app.route('/result/<string:token>')
def result(token):
    """
    Previews the finished rows and offers the downloads.
    """
    entry = get_conversion(token)
    if entry is None:
        return redirect(url_for('home'))

    workflow = entry['workflow']
    if not workflow.is_complete:
        return redirect(url_for('complete', token=token))

    return render_template('result.html',
                           token=token,
                           fields=CANONICAL_FIELDS,
                           preview=workflow.rows[:50],
                           total_rows=len(workflow.rows),
                           filename=entry['filename'])


@app.route('/download/<string:token>')
def download(token):
    """
    Streams the canonical CSV (default) or an Excel copy of it.
    """
    entry = get_conversion(token)
    if entry is None:
        return redirect(url_for('home'))

    workflow = entry['workflow']
    if not workflow.is_complete:
        flash("Action Required: Complete the missing details before downloading.", "warning")
        return redirect(url_for('complete', token=token))

    if request.args.get('format') == 'xlsx':
        return send_file(
            to_xlsx(workflow.rows),
            as_attachment=True,
            download_name=download_name(entry, 'xlsx'),
            mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        )

    output = io.BytesIO(workflow.to_csv().encode('utf-8'))
    return send_file(
        output,
        as_attachment=True,
        download_name=download_name(entry, 'csv'),
        mimetype='text/csv'
    )


@app.route('/discard/<string:token>', methods=['POST'])
def discard(token):
    """
    Abandons a conversion; nothing was written, so dropping the workflow is enough.
    """
    if CONVERSION_STORE.pop(token, None) is not None:
        flash("Conversion discarded.", "info")
    return redirect(url_for('home'))

# ---------------------------------------------------
# ERROR HANDLERS
# ---------------------------------------------------

@app.errorhandler(404)
def page_not_found(e):
    """
    Redirects users to the home page on 404 errors.
    """
    flash("Navigation Warning: The requested URL was not found.", "warning")
    return redirect(url_for('home'))

@app.errorhandler(413)
def file_too_large(e):
    flash("Upload Refused: The file exceeds the maximum upload size.", "danger")
    return redirect(url_for('home'))

@app.errorhandler(500)
def internal_server_error(e):
    """
    Redirects users to the home page on internal server errors.
    """
    flash("Critical Error: An unexpected issue occurred.", "danger")
    return redirect(url_for('home'))

if __name__ == '__main__':
    app.run(debug=True)
