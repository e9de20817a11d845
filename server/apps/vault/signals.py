"""Signal handlers for vault app."""

import logging

from django.conf import settings
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from server.apps.vault.logic import blob_janitor
from server.apps.vault.models import Item, UserQuota

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_quota(
    sender: type,
    instance: object,
    created: bool,
    **kwargs: object,
) -> None:
    """Give every new user a ledger with the configured default limit.

    Args:
        sender: The user model class.
        instance: The saved user.
        created: Whether the user was just created.
        **kwargs: Additional signal arguments.
    """
    if not created or kwargs.get('raw'):
        return
    UserQuota.objects.get_or_create(
        user=instance,
        defaults={'quota_bytes': settings.VAULT_DEFAULT_QUOTA_BYTES},
    )
    logger.info('Created quota for new user ID=%s', instance.pk)  # type: ignore[attr-defined]


@receiver(post_delete, sender=Item)
def delete_blob_from_storage(
    sender: type[Item],
    instance: Item,
    **kwargs: object,
) -> None:
    """Delete the item's blob once the delete has been committed.

    This covers every way an item row disappears (single delete,
    folder cascade, admin, user removal). A rolled back delete keeps
    its blob; a failed removal is logged and leaves an orphan.

    Args:
        sender: The Item model class.
        instance: The Item instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.has_blob:
        return
    blob_janitor.schedule_removal(instance.blob.name)
