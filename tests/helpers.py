import json as jsonlib
from typing import Any, Optional

import requests


def make_response(
    status_code: int = 200,
    text: Optional[str] = None,
    json: Any = None,
    url: str = "http://example.test/",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.encoding = "utf-8"
    if json is not None:
        body = jsonlib.dumps(json)
        response.headers["Content-Type"] = "application/json"
    else:
        body = text or ""
    response._content = body.encode("utf-8")
    return response


GATEWAY_PAGE = """
<html><head><script type="text/javascript">
    var mac = "AA:BB:CC:DD:EE:FF";
    var ip = "10.10.0.23";
    var chap_id = "\\251";
    var chap_challenge = "ch4ll3ng3";
    var link_login_only = "http://10.10.0.1/login";
</script></head>
<body onload="document.sendin.submit()"></body></html>
"""

AUTH_FORM = """
<form name="login" action="http://10.10.0.1/login" method="post">
    <input type="hidden" name="username" value="guest-8812">
    <input type="hidden" name="password" value="s3cr3t-pw">
    <input type="hidden" name="dst" value="">
</form>
"""


