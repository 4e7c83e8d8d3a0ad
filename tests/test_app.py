import io
import os
from datetime import datetime, timedelta

import pandas as pd

import app as app_module
import extractor
from schema import CANONICAL_FIELDS

FULL_CSV = (
    "Roll,Name,Class,Sec,Dept,Yr,Sem,Code,Sub,Grade,Credits\n"
    "21A1,\"Doe, J\",B.Tech,A,CSE,2,3,CS101,DBMS,A,4\n"
)
PARTIAL_CSV = "Roll,Name,Sec,Dept,Yr,Sem,Code,Sub,Grade\n21A1,J Doe,A,CSE,2,3,CS101,DBMS,B\n"


def upload(client, content, filename, **form):
    data = dict(form)
    data['source_file'] = (io.BytesIO(content.encode('utf-8')), filename)
    return client.post('/convert', data=data, content_type='multipart/form-data')


def only_token():
    assert len(app_module.CONVERSION_STORE) == 1
    return next(iter(app_module.CONVERSION_STORE))


def test_home_renders_form(client):
    resp = client.get('/')
    assert resp.status_code == 200
    assert b'source_file' in resp.data
    assert b'Default Credits' in resp.data


def test_complete_upload_goes_straight_to_result(client, tmp_path):
    resp = upload(client, FULL_CSV, 'results.csv')
    token = only_token()
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith(f'/result/{token}')
    # The upload itself is never kept
    assert os.listdir(tmp_path) == []

    page = client.get(f'/result/{token}')
    assert page.status_code == 200
    assert b'CSV ready' in page.data

    csv_resp = client.get(f'/download/{token}')
    assert csv_resp.status_code == 200
    assert csv_resp.mimetype == 'text/csv'
    lines = csv_resp.data.decode('utf-8').split('\n')
    assert lines[0] == ','.join(CANONICAL_FIELDS)
    assert lines[1] == '21A1,"Doe, J",B.Tech,A,CSE,2,3,CS101,DBMS,A,9,4'


def test_excel_download(client):
    upload(client, FULL_CSV, 'results.csv')
    token = only_token()
    resp = client.get(f'/download/{token}?format=xlsx')
    assert resp.status_code == 200
    df = pd.read_excel(io.BytesIO(resp.data), dtype=str)
    assert list(df.columns) == list(CANONICAL_FIELDS)
    assert df.loc[0, 'Student Name'] == 'Doe, J'


def test_missing_class_then_credits(client):
    resp = upload(client, PARTIAL_CSV, 'export.csv', default_credits='')
    token = only_token()
    assert resp.headers['Location'].endswith(f'/complete/{token}')

    form = client.get(f'/complete/{token}')
    assert b'Missing details' in form.data
    assert b'Class' in form.data

    resp = client.post(f'/complete/{token}', data={'value_0': 'B.Tech'})
    assert resp.headers['Location'].endswith(f'/complete/{token}')
    form = client.get(f'/complete/{token}')
    assert b'Credits per subject' in form.data
    assert b'DBMS' in form.data

    resp = client.post(f'/complete/{token}', data={'value_0': '4'})
    assert resp.headers['Location'].endswith(f'/result/{token}')

    text = client.get(f'/download/{token}').data.decode('utf-8')
    assert text.split('\n')[1] == '21A1,J Doe,B.Tech,A,CSE,2,3,CS101,DBMS,B,8,4'


def test_default_credits_fill_blank_answers(client):
    upload(client, PARTIAL_CSV, 'export.csv', default_credits='3')
    token = only_token()
    client.post(f'/complete/{token}', data={'value_0': 'B.Tech'})
    client.post(f'/complete/{token}', data={'value_0': ''})
    text = client.get(f'/download/{token}').data.decode('utf-8')
    assert text.split('\n')[1].endswith(',8,3')


def test_blank_required_answer_stays_on_form(client):
    upload(client, PARTIAL_CSV, 'export.csv')
    token = only_token()
    resp = client.post(f'/complete/{token}', data={'value_0': ''}, follow_redirects=True)
    assert b'Please fill in every value' in resp.data
    assert b'Missing details' in resp.data


def test_download_before_complete_redirects(client):
    upload(client, PARTIAL_CSV, 'export.csv')
    token = only_token()
    resp = client.get(f'/download/{token}')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith(f'/complete/{token}')


def test_pdf_upload(client, monkeypatch):
    monkeypatch.setattr(extractor, 'read_pdf_pages',
                        lambda path: ['HTNO SUBCODE SUBNAME GRADE CREDITS\n21A1 CS101 DBMS A 4'])
    resp = upload(client, '%PDF-fake', 'ledger.pdf', default_credits='')
    token = only_token()
    assert resp.headers['Location'].endswith(f'/complete/{token}')
    pending = app_module.CONVERSION_STORE[token]['workflow'].pending
    assert pending.missing_required_fields == ('Class', 'Section', 'Department', 'Year', 'Semester')


def test_no_data_is_flashed(client):
    resp = upload(client, 'Roll,Grade\n', 'empty.csv', )
    assert resp.status_code == 302
    assert app_module.CONVERSION_STORE == {}
    page = client.get('/')
    assert b'No data found' in page.data


def test_unsupported_upload_rejected(client):
    resp = upload(client, 'hello', 'notes.txt')
    assert resp.status_code == 302
    assert b'Unsupported File' in client.get('/').data


def test_missing_file_part(client):
    resp = client.post('/convert', data={}, content_type='multipart/form-data')
    assert resp.status_code == 302
    assert b'File part not detected' in client.get('/').data


def test_unknown_token(client):
    resp = client.get('/result/nope', follow_redirects=True)
    assert b'Session Expired' in resp.data


def test_discard(client):
    upload(client, PARTIAL_CSV, 'export.csv')
    token = only_token()
    resp = client.post(f'/discard/{token}', follow_redirects=True)
    assert b'Conversion discarded' in resp.data
    assert app_module.CONVERSION_STORE == {}


def test_store_keeps_only_newest_conversions(client, monkeypatch):
    monkeypatch.setitem(app_module.app.config, 'STORE_MAX_ENTRIES', 3)
    tokens = []
    for _ in range(5):
        resp = upload(client, FULL_CSV, 'results.csv')
        token = resp.headers['Location'].rsplit('/', 1)[-1]
        assert client.get(f'/download/{token}').status_code == 200
        tokens.append(token)
    assert list(app_module.CONVERSION_STORE) == tokens[2:]

    # Evicted tokens behave like any expired session
    resp = client.get(f'/download/{tokens[0]}', follow_redirects=True)
    assert b'Session Expired' in resp.data


def test_store_drops_stale_conversions(client):
    upload(client, FULL_CSV, 'results.csv')
    stale = only_token()
    app_module.CONVERSION_STORE[stale]['created'] = datetime.now() - timedelta(
        minutes=app_module.app.config['STORE_TTL_MINUTES'] + 1)

    upload(client, FULL_CSV, 'results.csv')
    assert stale not in app_module.CONVERSION_STORE
    assert len(app_module.CONVERSION_STORE) == 1


def test_prune_store_with_fixed_clock(client):
    now = datetime(2024, 5, 1, 12, 0)
    app_module.CONVERSION_STORE.update({
        'old': {'created': now - timedelta(hours=3)},
        'fresh': {'created': now - timedelta(minutes=5)},
    })
    app_module.prune_store(now=now)
    assert list(app_module.CONVERSION_STORE) == ['fresh']


def test_not_found_redirects_home(client):
    resp = client.get('/no/such/page')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/')
