"""
auth/session_auth.py -- Binding an authenticated user to the request's session.

This is the writer of the identity payload that session/identity.py reads.

set_authorized_session() rotates the identifier with delete_old=True before
writing anything: the pre-login identifier may have been planted or observed,
so it must not survive the privilege change. The CSRF token is carried over
by regenerate(), so the login page's token keeps working for the next request.
"""

from __future__ import annotations

import logging

from auth.models import User
from session.context import SessionContext
from session.identity import identity_from_payload, identity_to_payload
from session.models import IDENTITY_KEY, USER_ID_KEY, Identity

logger = logging.getLogger("taskflow.auth")


def identity_for(user: User) -> Identity:
    return identity_from_payload(
        {
            "id": user.id,
            "public_id": user.public_id,
            "first_name": user.first_name,
            "middle_name": user.middle_name,
            "last_name": user.last_name,
            "gender": user.gender,
            "birth_date": user.birth_date,
            "role": user.role,
            "job_titles": user.job_titles,
            "contact_number": user.contact_number,
            "email": user.email,
            "bio": user.bio,
            "profile_link": user.profile_link,
            "created_at": user.created_at,
            "additional_info": user.additional_info,
        }
    )


def set_authorized_session(context: SessionContext, user: User) -> Identity:
    store = context.store
    if not store.is_active():
        store.create()
    store.regenerate(delete_old=True)

    identity = identity_for(user)
    context.identity.instantiate(identity)
    store.set(USER_ID_KEY, user.id)
    store.set(IDENTITY_KEY, identity_to_payload(identity))
    logger.info("User %s signed in", user.public_id)
    return identity


def has_authorized_session(context: SessionContext) -> bool:
    store = context.store
    return context.current_identity is not None and store.is_active() and store.has(USER_ID_KEY)


def destroy_session(context: SessionContext) -> None:
    context.store.destroy()
