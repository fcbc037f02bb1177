# admissions_core/signals.py
from __future__ import annotations

from threading import local

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from admissions_core.models import ActorMembership, Application, AuditEntry

# ===============================================================
# Thread-local user storage
# ===============================================================
_state = local()


def set_current_user(user):
    _state.user = user


def get_current_user():
    return getattr(_state, "user", None)


# ===============================================================
# Utilities
# ===============================================================
def _authenticated(user):
    return user if user and user.is_authenticated else None


def _log(event: str, instance, *, application=None, description: str = "", metadata: dict | None = None):
    AuditEntry.objects.create(
        application=application,
        application_ref=getattr(application, "pk", None),
        event=event,
        user=_authenticated(get_current_user()),
        description=description,
        metadata=metadata or {
            "model": instance.__class__.__name__,
            "object_id": instance.pk,
        },
    )


# ===============================================================
# Application lifecycle audit
# ===============================================================
@receiver(post_save, sender=Application)
def audit_application_created(sender, instance: Application, created: bool, **kwargs):
    # Updates are audited by the workflow engine, not here.
    if not created:
        return

    _log(
        "application.created",
        instance,
        application=instance,
        description=f"Application created for {instance.student_name}",
        metadata={
            "partner_code": instance.partner_code,
            "program": instance.program,
            "university": instance.university,
        },
    )


@receiver(post_delete, sender=Application)
def audit_application_deleted(sender, instance: Application, **kwargs):
    AuditEntry.objects.create(
        application=None,
        application_ref=instance.pk,
        event="application.deleted",
        user=_authenticated(get_current_user()),
        from_stage=instance.stage,
        from_status=instance.status,
        description=f"Application for {instance.student_name} deleted",
    )


# ===============================================================
# Membership audit
# ===============================================================
@receiver(post_save, sender=ActorMembership)
def audit_membership_saved(sender, instance: ActorMembership, created: bool, **kwargs):
    _log("membership.created" if created else "membership.updated", instance)


@receiver(post_delete, sender=ActorMembership)
def audit_membership_deleted(sender, instance: ActorMembership, **kwargs):
    _log("membership.deleted", instance)

