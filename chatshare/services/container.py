"""
Service wiring — one set of core services bound to one DB session.

Blueprints build a container per request from ``db.session``; tests build
one directly and may swap individual collaborators.
"""

from chatshare.services.activity_service import ActivityRecorder
from chatshare.services.directory_service import DirectoryService
from chatshare.services.permission_service import PermissionResolver
from chatshare.services.session_service import SessionService
from chatshare.services.share_token_service import ShareTokenIssuer
from chatshare.services.sharing_service import SharingService
from chatshare.utils.helpers import DEFAULT_LIMIT, MAX_LIMIT


class ServiceContainer:
    def __init__(self, session, recorder=None, token_factory=None,
                 default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT):
        self.session = session
        self.recorder = recorder or ActivityRecorder(session)
        self.resolver = PermissionResolver(session)
        self.tokens = ShareTokenIssuer(session, self.resolver, self.recorder, token_factory)
        self.sharing = SharingService(session, self.resolver, self.recorder)
        self.directory = DirectoryService(session, self.resolver, default_limit, max_limit)
        self.sessions = SessionService(session, self.resolver, self.tokens, self.recorder)
