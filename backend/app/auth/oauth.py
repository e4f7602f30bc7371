"""GitHub OAuth configuration using the authlib Starlette integration."""

from authlib.integrations.starlette_client import OAuth

from app.config import settings

oauth = OAuth()

oauth.register(
    name="github",
    client_id=settings.github_client_id,
    client_secret=settings.github_client_secret,
    authorize_url="https://github.com/login/oauth/authorize",
    access_token_url="https://github.com/login/oauth/access_token",
    api_base_url="https://api.github.com/",
    client_kwargs={"scope": "user:email"},
)


def _pick_verified_email(emails: list[dict]) -> str:
    """Primary verified address first, then any verified address."""
    for entry in emails:
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email", "")
    for entry in emails:
        if entry.get("verified"):
            return entry.get("email", "")
    return ""


async def get_github_user_info(client, token: dict) -> dict:
    """Fetch standardized user info from the GitHub API.

    The base ``/user`` response omits private emails, so ``/user/emails`` is
    consulted when needed.

    Args:
        client: The authlib GitHub OAuth client (``oauth.github``).
        token: The OAuth token dict returned by the callback.

    Returns:
        dict with keys: email, name, image, email_verified, provider, provider_id
    """
    resp = await client.get("user", token=token)
    profile = resp.json()

    email = profile.get("email") or ""
    # A public profile email is not necessarily verified; the emails list says.
    email_verified = False
    if not email:
        emails_resp = await client.get("user/emails", token=token)
        email = _pick_verified_email(emails_resp.json())
        email_verified = bool(email)

    return {
        "email": email,
        "name": profile.get("name") or profile.get("login", ""),
        "image": profile.get("avatar_url"),
        "email_verified": email_verified,
        "provider": "github",
        "provider_id": str(profile.get("id", "")),
    }
