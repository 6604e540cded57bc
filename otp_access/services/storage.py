import os
import threading

import boto3
from flask import current_app, send_from_directory

_s3 = None
_lock = threading.Lock()


def s3_client():
    global _s3
    if _s3 is not None:
        return _s3
    with _lock:
        if _s3 is None:
            cfg = current_app.config
            _s3 = boto3.client(
                's3',
                region_name=cfg.get('AWS_REGION'),
                aws_access_key_id=cfg.get('AWS_ACCESS_KEY_ID'),
                aws_secret_access_key=cfg.get('AWS_SECRET_ACCESS_KEY'),
                endpoint_url=cfg.get('S3_ENDPOINT_URL'),
            )
    return _s3


def split_s3_ref(ref: str) -> tuple[str, str]:
    bucket, _, key = ref[len('s3://'):].partition('/')
    if not bucket or not key:
        raise ValueError(f'malformed s3 ref: {ref}')
    return bucket, key


def presign_s3(ref: str, expires_in: int) -> str:
    bucket, key = split_s3_ref(ref)
    return s3_client().generate_presigned_url(
        'get_object',
        Params={'Bucket': bucket, 'Key': key},
        ExpiresIn=expires_in,
    )


def send_blob(path: str):
    root = os.path.abspath(current_app.config['MEDIA_ROOT'])
    resp = send_from_directory(root, path, max_age=0)
    resp.headers['Cache-Control'] = 'no-store'
    return resp
