from functools import cache

from orderdesk.core import libaws
from orderdesk.core.email import SmtpTransport
from orderdesk.core.notifier import Notifier
from orderdesk.core.storage import ObjectStorage
from orderdesk.core.vault import CredentialVault, get_vault
from orderdesk.shared import Secrets, load_config

__all__ = ["get_notifier", "get_storage", "get_vault_dependency"]

config = load_config()


@cache
def get_storage() -> ObjectStorage:
    return ObjectStorage(
        client=libaws.s3_client(config.storage),
        bucket=config.storage.bucket,
        endpoint_url=config.storage.endpoint_url,
    )


@cache
def get_notifier() -> Notifier:
    secrets = Secrets.from_env()
    transport = SmtpTransport(
        config.email,
        username=secrets.smtp_username,
        password=secrets.smtp_password,
    )
    return Notifier(
        transport,
        grace_period=config.notifier.grace_period,
        deadline=config.notifier.deadline,
        max_workers=config.notifier.max_workers,
    )


def get_vault_dependency() -> CredentialVault:
    return get_vault()
