from flask import current_app

from ..models import AccessCode, Issuer, Resource

PAGE_PATHS = {'knowledge': 'knowledge', 'infolink': 'infolink'}

DEFAULT_TEMPLATE = """Hi!

Here is something worth a look: "{title}"

{description}

Open the link below and enter the access code:

Link: {share_url}
Access code: {otp_code}

The code is valid for {validity_hours} hours from first use.

{issuer_name}"""


class _Blanks(dict):
    def __missing__(self, key):
        return '{' + key + '}'


def share_url(resource: Resource) -> str:
    path = PAGE_PATHS.get(resource.kind, resource.kind)
    return f"{current_app.config['BASE_URL']}/{path}/{resource.slug}"


def share_message(code: AccessCode, resource: Resource, issuer: Issuer) -> str:
    template = resource.share_message_template or DEFAULT_TEMPLATE
    return template.format_map(_Blanks(
        title=resource.title,
        description=resource.description or '',
        share_url=share_url(resource),
        otp_code=code.code,
        validity_hours=code.validity_window_seconds // 3600,
        issuer_name=issuer.name,
    ))
