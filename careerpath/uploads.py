import time

from imagekitio import ImageKit


def upload_auth_params(private_key, public_key, url_endpoint, ttl=2400, now=None, token=None):
    """Signed parameters letting the browser upload straight to the image CDN.

    The SDK signs ``token + expire`` with the private key; the private key
    itself never leaves the server.
    """
    if not private_key or not public_key or not url_endpoint:
        raise ValueError("Image upload keys are not configured")
    imagekit = ImageKit(private_key=private_key, public_key=public_key, url_endpoint=url_endpoint)
    expire = int(now if now is not None else time.time()) + ttl
    params = imagekit.get_authentication_parameters(token=token or "", expire=expire)
    params["publicKey"] = public_key
    return params


def profile_upload_target(user_id, filename):
    return {
        "fileName": f"profile_{user_id}_{filename}",
        "folder": f"/user_profile_images/{user_id}/",
    }
