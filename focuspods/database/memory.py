# database/memory.py

import dataclasses
import threading
from typing import Any, Dict, List, Optional

from focuspods.core.models import (
    User, FocusSession, Pod, PodStatus, UserStats, Notification
)
from focuspods.database.store import Store, StoreError, StoreConflictError

USERS = "users"
SESSIONS = "sessions"
PODS = "pods"
STATS = "user_stats"
NOTIFICATIONS = "notifications"

TABLES = (USERS, SESSIONS, PODS, STATS, NOTIFICATIONS)


class InMemoryStore(Store):
    """
    Хранилище в памяти процесса

    Строки хранятся в сериализованном виде (to_dict), поэтому каждое чтение
    возвращает новый объект и вызывающий код не может изменить данные в обход
    update_*.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in TABLES}

    # ===== HELPERS =====

    def _on_change(self) -> None:
        """Хук для наследников (сохранение на диск)"""
        pass

    def _insert(self, table: str, key: str, entity) -> None:
        with self._lock:
            if key in self._tables[table]:
                raise StoreConflictError(f"{table}: duplicate key {key}")
            self._tables[table][key] = entity.to_dict()
            try:
                self._on_change()
            except StoreError:
                del self._tables[table][key]
                raise

    def _load(self, table: str, key: str, cls):
        with self._lock:
            row = self._tables[table].get(key)
            return cls.from_dict(row) if row is not None else None

    def _rows(self, table: str, cls) -> List:
        with self._lock:
            return [cls.from_dict(row) for row in self._tables[table].values()]

    def _apply(self, table: str, key: str, cls, changes: Dict[str, Any]):
        with self._lock:
            entity = self._load(table, key, cls)
            if entity is None:
                return None

            field_names = {f.name for f in dataclasses.fields(cls)}
            unknown = set(changes) - field_names
            if unknown:
                raise StoreError(f"{table}: unknown fields {sorted(unknown)}")

            updated = dataclasses.replace(entity, **changes)
            previous = self._tables[table][key]
            self._tables[table][key] = updated.to_dict()
            try:
                self._on_change()
            except StoreError:
                # откат до состояния на диске
                self._tables[table][key] = previous
                raise
            return updated

    # ===== USERS =====

    def get_user(self, user_id: str) -> Optional[User]:
        return self._load(USERS, user_id, User)

    def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        with self._lock:
            for row in self._tables[USERS].values():
                if row['external_id'] == str(external_id):
                    return User.from_dict(row)
        return None

    def create_user(self, user: User) -> User:
        with self._lock:
            if self.get_user_by_external_id(user.external_id):
                raise StoreConflictError(f"users: duplicate external id {user.external_id}")
            self._insert(USERS, user.user_id, user)
        return self.get_user(user.user_id)

    def update_user(self, user_id: str, **changes) -> Optional[User]:
        return self._apply(USERS, user_id, User, changes)

    def get_all_users(self) -> List[User]:
        return self._rows(USERS, User)

    # ===== SESSIONS =====

    def get_session(self, session_id: str) -> Optional[FocusSession]:
        return self._load(SESSIONS, session_id, FocusSession)

    def create_session(self, session: FocusSession) -> FocusSession:
        self._insert(SESSIONS, session.session_id, session)
        return self.get_session(session.session_id)

    def update_session(self, session_id: str, **changes) -> Optional[FocusSession]:
        return self._apply(SESSIONS, session_id, FocusSession, changes)

    def get_user_sessions(self, user_id: str) -> List[FocusSession]:
        sessions = [s for s in self._rows(SESSIONS, FocusSession) if s.user_id == user_id]
        return sorted(sessions, key=lambda s: s.start_time, reverse=True)

    def get_open_sessions(self, user_id: Optional[str] = None) -> List[FocusSession]:
        return [
            s for s in self._rows(SESSIONS, FocusSession)
            if s.end_time is None and not s.completed
            and (user_id is None or s.user_id == user_id)
        ]

    # ===== PODS =====

    def get_pod(self, pod_id: str) -> Optional[Pod]:
        return self._load(PODS, pod_id, Pod)

    def get_pod_by_invite_code(self, invite_code: str) -> Optional[Pod]:
        code = (invite_code or "").strip().upper()
        with self._lock:
            for row in self._tables[PODS].values():
                if row['invite_code'] == code:
                    return Pod.from_dict(row)
        return None

    def create_pod(self, pod: Pod) -> Pod:
        with self._lock:
            if self.get_pod_by_invite_code(pod.invite_code):
                raise StoreConflictError(f"pods: duplicate invite code {pod.invite_code}")
            self._insert(PODS, pod.pod_id, pod)
        return self.get_pod(pod.pod_id)

    def update_pod(self, pod_id: str, **changes) -> Optional[Pod]:
        return self._apply(PODS, pod_id, Pod, changes)

    def get_user_pods(self, user_id: str) -> List[Pod]:
        pods = [p for p in self._rows(PODS, Pod) if p.has_participant(user_id)]
        return sorted(pods, key=lambda p: p.created_at.isoformat() if p.created_at else "", reverse=True)

    def get_pods_by_status(self, *statuses: PodStatus) -> List[Pod]:
        return [p for p in self._rows(PODS, Pod) if p.status in statuses]

    # ===== STATS =====

    def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        return self._load(STATS, user_id, UserStats)

    def update_user_stats(self, user_id: str, **changes) -> UserStats:
        with self._lock:
            if user_id not in self._tables[STATS]:
                self._insert(STATS, user_id, UserStats(user_id=user_id))
            return self._apply(STATS, user_id, UserStats, changes)

    def get_all_user_stats(self) -> List[UserStats]:
        return self._rows(STATS, UserStats)

    # ===== NOTIFICATIONS =====

    def create_notification(self, notification: Notification) -> Notification:
        self._insert(NOTIFICATIONS, notification.notification_id, notification)
        return notification

    def get_user_notifications(self, user_id: str) -> List[Notification]:
        notifications = [
            n for n in self._rows(NOTIFICATIONS, Notification) if n.user_id == user_id
        ]
        return sorted(notifications, key=lambda n: n.sent_at, reverse=True)

    def mark_notification_read(self, notification_id: str) -> bool:
        return self._apply(NOTIFICATIONS, notification_id, Notification, {'read': True}) is not None

    # ===== SNAPSHOT =====

    def dump(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        with self._lock:
            return {name: dict(rows) for name, rows in self._tables.items()}

    def restore(self, data: Dict[str, Dict[str, Dict[str, Any]]]) -> None:
        with self._lock:
            self._tables = {name: dict(data.get(name, {})) for name in TABLES}
