from __future__ import annotations

from cowrite.collab.comments import CommentAuthorization, CommentMode
from cowrite.docs.roles import Role


def test_mode_is_rederived_on_every_call() -> None:
    current = {"role": Role.VIEWER}
    auth = CommentAuthorization("user-1", lambda: current["role"])
    assert auth.mode() is CommentMode.COMMENT
    assert not auth.can_resolve_threads()

    current["role"] = Role.EDITOR
    assert auth.thread_auth() == ("user-1", "editor")

    current["role"] = Role.ADMIN
    assert auth.mode() is CommentMode.EDITOR

    current["role"] = None
    assert auth.thread_auth() == ("user-1", "comment")
