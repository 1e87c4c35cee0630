"""
Read-only client for the Veeam Backup & Replication REST API.

Only the queries the size reports need are implemented:

- repositories (plain and scale-out)
- backups, with their object restore points and backup files

Authentication uses the OAuth2 password grant; every request carries the
x-api-version header. Collection endpoints are paged with skip/limit.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Iterator, List, Optional

import requests
import urllib3

from .constants import (
    DEFAULT_API_VERSION,
    DEFAULT_PAGE_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_VBR_PORT,
    REPOSITORY_KIND_PLAIN,
    REPOSITORY_KIND_SCALE_OUT,
    VBR_BACKUP_FILES_PATH,
    VBR_BACKUPS_PATH,
    VBR_LOGOUT_PATH,
    VBR_OBJECT_RESTORE_POINTS_PATH,
    VBR_REPOSITORIES_PATH,
    VBR_SCALE_OUT_REPOSITORIES_PATH,
    VBR_TOKEN_PATH,
)
from .models import Repository, RestorePoint, Storage, StorageStat
from .utils import AUTH_STATUS_CODES, AuthError, ProgressTracker, VbrApiError, retry_with_backoff

logger = logging.getLogger(__name__)


class VbrClient:
    """
    Session against one backup server.

    Usage:
        with VbrClient("vbr01", "admin", password) as client:
            repos = client.list_repositories()
            points = client.list_restore_points()
    """

    def __init__(
        self,
        server: str,
        username: str,
        password: str,
        port: int = DEFAULT_VBR_PORT,
        api_version: str = DEFAULT_API_VERSION,
        verify_ssl: bool = True,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.server = server
        self.username = username
        self._password = password
        self.base_url = f"https://{server}:{port}"
        self.page_size = page_size
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update({
            'x-api-version': api_version,
            'Accept': 'application/json',
        })
        self.session.verify = verify_ssl
        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            logger.warning(f"TLS certificate verification disabled for {server}")

        self._authenticated = False

    def __enter__(self):
        self.login()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logout()
        return False

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    @retry_with_backoff()
    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Send one request; raise AuthError on 401/403 and VbrApiError on other failures."""
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url} params={kwargs.get('params')}")
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)

        if response.status_code in AUTH_STATUS_CODES:
            raise AuthError(
                f"{method} {path} rejected with HTTP {response.status_code}",
                server=self.server
            )
        if not response.ok:
            raise VbrApiError(
                f"{method} {path} failed with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                path=path
            )
        return response

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request('GET', path, params=params).json()

    def _get_paged(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paged collection endpoint."""
        skip = 0
        while True:
            page_params = dict(params or {})
            page_params.update({'skip': skip, 'limit': self.page_size})
            body = self._get_json(path, params=page_params)

            items = body.get('data') or []
            yield from items

            skip += len(items)
            total = (body.get('pagination') or {}).get('total')
            if not items or total is None or skip >= total:
                break

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def login(self) -> None:
        """Obtain a bearer token with the password grant."""
        logger.info(f"Connecting to {self.base_url} as {self.username}")
        response = self._request('POST', VBR_TOKEN_PATH, data={
            'grant_type': 'password',
            'username': self.username,
            'password': self._password,
        })
        token = response.json().get('access_token')
        if not token:
            raise AuthError("Token endpoint returned no access_token", server=self.server)
        self.session.headers['Authorization'] = f"Bearer {token}"
        self._authenticated = True

    def logout(self) -> None:
        """Revoke the token. Failures are logged, the token is dropped either way."""
        if not self._authenticated:
            return
        try:
            self._request('POST', VBR_LOGOUT_PATH)
        except (AuthError, VbrApiError, requests.RequestException) as e:
            logger.debug(f"Logout failed: {e}")
        finally:
            self.session.headers.pop('Authorization', None)
            self._authenticated = False

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_repositories(self) -> List[Repository]:
        """Plain and scale-out repositories known to the server."""
        repositories = [
            Repository(id=item['id'], name=item['name'], kind=REPOSITORY_KIND_PLAIN)
            for item in self._get_paged(VBR_REPOSITORIES_PATH)
        ]
        scale_out = [
            Repository(id=item['id'], name=item['name'], kind=REPOSITORY_KIND_SCALE_OUT)
            for item in self._get_paged(VBR_SCALE_OUT_REPOSITORIES_PATH)
        ]
        logger.info(f"Found {len(repositories)} repositories and {len(scale_out)} scale-out repositories")
        return repositories + scale_out

    def list_backups(self) -> List[Dict[str, Any]]:
        return list(self._get_paged(VBR_BACKUPS_PATH))

    def list_backup_restore_points(self, backup: Dict[str, Any]) -> List[RestorePoint]:
        """
        Restore points of one backup with their storage stats.

        A backup file lists the restore points it holds; its size becomes a
        storage stat of each of them. Restore points inherit the backup's
        repositoryId.
        """
        backup_id = backup['id']
        files = self._get_paged(VBR_BACKUP_FILES_PATH.format(backup_id=backup_id))

        stats_by_point: Dict[str, List[StorageStat]] = defaultdict(list)
        for f in files:
            stat = StorageStat(
                backup_size=int(f.get('backupSize') or 0),
                name=f.get('name') or '',
                data_size=int(f.get('dataSize') or 0),
            )
            for point_id in f.get('restorePointIds') or []:
                stats_by_point[point_id].append(stat)

        points = []
        for item in self._get_paged(VBR_OBJECT_RESTORE_POINTS_PATH, params={'backupIdFilter': backup_id}):
            points.append(RestorePoint(
                id=item['id'],
                name=item.get('name') or '',
                repository_id=backup.get('repositoryId'),
                storage=Storage(stats=stats_by_point.get(item['id'], [])),
                metadata={
                    'backup_id': backup_id,
                    'creation_time': item.get('creationTime'),
                    'platform': item.get('platformName'),
                },
            ))

        logger.debug(f"Backup {backup.get('name', backup_id)}: {len(points)} restore points")
        return points

    def list_restore_points(self, show_progress: bool = True) -> List[RestorePoint]:
        """Restore points of every backup on the server."""
        backups = self.list_backups()
        logger.info(f"Found {len(backups)} backups")

        all_points: List[RestorePoint] = []
        with ProgressTracker("VBR", total_backups=len(backups), show_progress=show_progress) as tracker:
            for backup in backups:
                tracker.start_backup(backup.get('name') or backup['id'])
                points = self.list_backup_restore_points(backup)
                all_points.extend(points)
                tracker.add_restore_points(len(points), sum(p.backup_size() for p in points))
                tracker.complete_backup()

        return all_points
