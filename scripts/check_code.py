#!/usr/bin/env python3
import sys, json, pathlib

# Usage: python scripts/check_code.py <CODE>
# Prints the derived state of a code and its sessions

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import select

from otp_access import create_app
from otp_access.models import db, AccessCode, as_utc, utcnow
from otp_access.services.codegen import normalize_code
from otp_access.services.sessions import sessions_for_code
from otp_access.services.state import code_state, remaining_seconds

if len(sys.argv) < 2:
    print("Usage: check_code.py <CODE>")
    sys.exit(1)

app = create_app()
with app.app_context():
    code = db.session.execute(
        select(AccessCode).where(AccessCode.code == normalize_code(sys.argv[1]))
    ).scalar_one_or_none()
    if code is None:
        print('not found')
        sys.exit(1)
    now = utcnow()
    print(json.dumps({
        'id': code.id,
        'state': code_state(code, now).value,
        'used_sessions': code.used_sessions,
        'max_sessions': code.max_sessions,
        'ceiling_expires_at': as_utc(code.ceiling_expires_at).isoformat(),
        'first_used_at': as_utc(code.first_used_at).isoformat() if code.first_used_at else None,
        'effective_expires_at': as_utc(code.effective_expires_at).isoformat(),
        'remaining_seconds': remaining_seconds(code.effective_expires_at, now),
        'sessions': [
            {'id': s.id, 'created_at': as_utc(s.created_at).isoformat(), 'device': s.device_fingerprint}
            for s in sessions_for_code(code.id)
        ],
    }, indent=2))
