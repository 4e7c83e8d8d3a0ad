import pytest

import app as app_module


@pytest.fixture
def client(tmp_path):
    flask_app = app_module.app
    flask_app.config.update(TESTING=True, UPLOAD_FOLDER=str(tmp_path))
    app_module.CONVERSION_STORE.clear()
    with flask_app.test_client() as client:
        yield client
    app_module.CONVERSION_STORE.clear()
