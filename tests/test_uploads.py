import hashlib
import hmac

import pytest

from careerpath.uploads import profile_upload_target, upload_auth_params

ENDPOINT = "https://ik.imagekit.io/demo"


def test_upload_auth_signature():
    params = upload_auth_params("private_key", "public_key", ENDPOINT, ttl=60, now=1000, token="tok")

    expected = hmac.new(b"private_key", b"tok1060", hashlib.sha1).hexdigest()
    assert params["token"] == "tok"
    assert int(params["expire"]) == 1060
    assert params["signature"] == expected
    assert params["publicKey"] == "public_key"


def test_upload_auth_generates_token():
    params = upload_auth_params("private_key", "public_key", ENDPOINT, ttl=60, now=1000)
    assert params["token"]
    assert int(params["expire"]) == 1060


@pytest.mark.parametrize("keys", [
    ("", "public_key", ENDPOINT),
    ("private_key", "", ENDPOINT),
    ("private_key", "public_key", ""),
])
def test_upload_auth_requires_keys(keys):
    with pytest.raises(ValueError):
        upload_auth_params(*keys)


def test_profile_upload_target():
    assert profile_upload_target("u1", "me.png") == {
        "fileName": "profile_u1_me.png",
        "folder": "/user_profile_images/u1/",
    }
