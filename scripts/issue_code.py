import os
import sys
import requests

BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
ISSUER_API_KEY = os.environ.get('ISSUER_API_KEY')

if not ISSUER_API_KEY:
    print('Missing ISSUER_API_KEY in env')
    sys.exit(1)

payload = {'resource_id': int(os.environ.get('RESOURCE_ID', '1'))}
for env_key, field in (('VALIDITY_HOURS', 'validity_hours'), ('MAX_SESSIONS', 'max_sessions')):
    if os.environ.get(env_key):
        payload[field] = int(os.environ[env_key])
if os.environ.get('RECIPIENT_NAME'):
    payload['recipient_name'] = os.environ['RECIPIENT_NAME']

headers = {'X-Issuer-Key': ISSUER_API_KEY}

# If WANT_PNG=1, request the QR image directly
if os.environ.get('WANT_PNG', '0') == '1':
    r = requests.post(f"{BASE_URL}/issuer/codes", headers={**headers, 'Accept': 'image/png'}, json=payload, timeout=10)
    if r.status_code != 200:
        print('Error:', r.status_code, r.text)
        sys.exit(1)
    out = os.environ.get('OUT', 'code.png')
    with open(out, 'wb') as f:
        f.write(r.content)
    print('PNG saved to', out)
    sys.exit(0)

r = requests.post(f"{BASE_URL}/issuer/codes", headers=headers, json=payload, timeout=10)
if r.status_code != 201:
    print('Error:', r.status_code, r.text)
    sys.exit(1)
res = r.json()
print('code:', res['code'])
print('valid until (if unused):', res['ceiling_expires_at'])
print()
print(res['share_message'])
