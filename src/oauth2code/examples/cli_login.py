"""
Log in to an OAuth 2.0 authorization server from the terminal.

Prints the authorization URL, waits for you to paste the URL your browser
was redirected to, then prints the Authorization header value.

Set these environment variables (a .env file works too):
    OAUTH2_AUTHORIZATION_URL, OAUTH2_TOKEN_URL, OAUTH2_CLIENT_ID
Optional:
    OAUTH2_CLIENT_SECRET, OAUTH2_REDIRECT_URI, OAUTH2_SCOPES (space separated),
    OAUTH2_REVOKE_URL, OAUTH2_INTROSPECT_URL, OAUTH2_DPOP_ALGORITHM,
    OAUTH2_REFRESH_TOKEN
"""

import asyncio
import json
import logging
import os

from dotenv import load_dotenv

from oauth2code.models.config import ClientCredentials, EndpointSet, OAuth2CodeConfig
from oauth2code.models.security import DPoPKeyMaterial
from oauth2code.oauth_client import OAuth2CodeClient
from oauth2code.prompters import CallbackUrlPrompter


async def ask_for_callback(url: str) -> str:
    print(f"Open this URL in your browser:\n\n    {url}\n")
    return await asyncio.to_thread(input, "Paste the redirect URL: ")


async def print_refresh_token(refresh_token: str) -> None:
    print(f"Refresh token issued; set OAUTH2_REFRESH_TOKEN={refresh_token} to reuse it")


async def print_dpop_key(material: DPoPKeyMaterial, exported: dict) -> None:
    logging.info(f"Generated {material.algorithm} DPoP key")
    logging.debug(json.dumps(exported["public_key"]))


def load_config() -> OAuth2CodeConfig:
    scopes = os.getenv("OAUTH2_SCOPES")
    return OAuth2CodeConfig(
        client=ClientCredentials(
            id=os.environ["OAUTH2_CLIENT_ID"],
            secret=os.getenv("OAUTH2_CLIENT_SECRET"),
            redirect_uri=os.getenv("OAUTH2_REDIRECT_URI"),
            scopes=scopes.split() if scopes else None,
        ),
        endpoints=EndpointSet(
            authorization_url=os.environ["OAUTH2_AUTHORIZATION_URL"],
            token_url=os.environ["OAUTH2_TOKEN_URL"],
            revoke_url=os.getenv("OAUTH2_REVOKE_URL"),
            introspect_url=os.getenv("OAUTH2_INTROSPECT_URL"),
        ),
        pkce=True,
        dpop_algorithm=os.getenv("OAUTH2_DPOP_ALGORITHM"),
    )


async def main():
    client = OAuth2CodeClient(
        load_config(),
        CallbackUrlPrompter(ask_for_callback),
        refresh_token=os.getenv("OAUTH2_REFRESH_TOKEN"),
    )
    client.callbacks.on_refresh_token_issued(print_refresh_token)
    client.callbacks.on_dpop_keypair_created(print_dpop_key)

    async with client:
        print(f"Authorization: {await client.get_authorization()}")

        introspection = await client.introspect()
        if introspection:
            print(introspection.model_dump_json(indent=2))


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
