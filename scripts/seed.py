import os, sys, pathlib
# Ensure project root is on PYTHONPATH when running directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from otp_access import create_app
from otp_access.models import db, Resource
from otp_access.services.issuers import create_issuer

api_key = os.environ.get('ISSUER_API_KEY', 'demo-issuer-key')

app = create_app()
with app.app_context():
    issuer = create_issuer('Demo Partner', api_key)
    db.session.add(Resource(
        kind='knowledge', slug='sleep-basics', title='Sleep basics',
        description='A short video on sleep hygiene.', content_type='video',
        asset_ref='s3://demo-bucket/knowledge/sleep-basics.mp4',
        otp_validity_hours=24, otp_max_sessions=3,
    ))
    db.session.add(Resource(
        kind='infolink', slug='welcome-pack', title='Welcome pack',
        content_type='text', text_content='<p>Welcome!</p>',
        otp_validity_hours=24, otp_max_sessions=1,
    ))
    db.session.commit()
    print('issuer id:', issuer.id, 'key:', api_key)
