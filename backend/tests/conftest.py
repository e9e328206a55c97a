import os, sys, pytest
# Ensure backend directory is on path so 'app' and 'scripts' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from app import create_app, get_db
from app.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import app.models.audit  # noqa: F401
import app.models.company  # noqa: F401
import app.models.product  # noqa: F401
import app.models.purchase_order  # noqa: F401
import app.models.shipment  # noqa: F401
import app.models.invoice  # noqa: F401
import app.models.packing_list  # noqa: F401
import app.models.proforma  # noqa: F401
import app.models.work_sheet  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance(tmp_path_factory):
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    storage = tmp_path_factory.mktemp('storage')
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'IMAGE_STORAGE_DIR': str(storage),
        'IMAGE_PUBLIC_BASE_URL': 'http://files.test',
        'TESTING': True,
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
