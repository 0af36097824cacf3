"""Users, face templates and access policies."""

import json
import logging
from typing import Any, Dict, List, Optional

from smarthome.adapters.storage.database import Database, Transaction
from smarthome.domain.face import face_id_for, match_templates
from smarthome.domain.policies import default_policies, load_policies
from smarthome.errors import SmartHomeError

logger = logging.getLogger(__name__)

USER_FIELDS = ("name", "email", "role", "relation", "pin", "preferred_login")
NOT_NULL_USER_FIELDS = ("name", "role", "relation", "preferred_login")


class DuplicateFaceError(SmartHomeError):
    """The submitted face template matches an already registered user."""

    def __init__(self, user: Dict[str, Any]):
        super().__init__("Face already registered")
        self.user = user


def null_required_fields(fields: Dict[str, Any]) -> List[str]:
    """Names of NOT NULL user columns that ``fields`` would set to null."""
    return [k for k in NOT_NULL_USER_FIELDS if k in fields and fields[k] is None]


def public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "role": row["role"],
        "relation": row["relation"],
    }


class UserRepository:
    def __init__(self, db: Database):
        self.db = db

    async def list_with_policies(self) -> List[Dict[str, Any]]:
        rows = await self.db.fetch_all(
            "SELECT u.*, p.policies FROM users u "
            "LEFT JOIN user_policies p ON p.user_id = u.id ORDER BY u.id DESC"
        )
        return [
            {
                **public_user(r),
                "registered_at": r["registered_at"],
                "policies": load_policies(r["role"], r["policies"]),
            }
            for r in rows
        ]

    @staticmethod
    async def _insert_user(
        tx: Transaction,
        name: str,
        email: Optional[str],
        role: str,
        relation: str,
        pin: Optional[str],
        preferred_login: str,
    ) -> int:
        cursor = await tx.execute(
            "INSERT INTO users (name, email, role, relation, pin, preferred_login) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (name, email or None, role, relation, pin or None, preferred_login),
        )
        return cursor.lastrowid

    @staticmethod
    async def upsert_policies(tx: Transaction, user_id: int, policies: Dict[str, Any]) -> None:
        await tx.execute(
            "INSERT INTO user_policies (user_id, policies) VALUES (?, ?) "
            "ON CONFLICT (user_id) DO UPDATE SET policies = excluded.policies",
            (user_id, json.dumps(policies)),
        )

    async def create(
        self,
        name: str,
        email: Optional[str] = None,
        role: str = "member",
        relation: str = "",
        pin: Optional[str] = None,
        policies: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Insert a PIN-login member; policies default to the role's defaults."""
        async with self.db.transaction() as tx:
            user_id = await self._insert_user(tx, name, email, role, relation, pin, "pin")
            await self.upsert_policies(tx, user_id, policies or default_policies(role))
        logger.info("Created user %s (%s)", user_id, role)
        return user_id

    async def register_with_face(
        self,
        name: str,
        template: str,
        email: Optional[str] = None,
        role: str = "member",
        relation: str = "",
        pin: Optional[str] = None,
        preferred_login: str = "pin",
        face_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a user with a face template; raises DuplicateFaceError if the
        face matches an existing template."""
        async with self.db.transaction() as tx:
            rows = await tx.fetch_all(
                "SELECT ft.user_id, ft.face_id, ft.template, u.name AS user_name "
                "FROM face_templates ft JOIN users u ON u.id = ft.user_id"
            )
            for r in rows:
                if match_templates(template, r["template"]):
                    raise DuplicateFaceError(
                        {"id": r["user_id"], "name": r["user_name"], "faceId": r["face_id"]}
                    )
            user_id = await self._insert_user(
                tx, name, email, role, relation, pin, preferred_login
            )
            stored_face_id = face_id or face_id_for(template)
            await tx.execute(
                "INSERT INTO face_templates (user_id, face_id, template) VALUES (?, ?, ?)",
                (user_id, stored_face_id, template),
            )
        logger.info("Registered face %s for user %s", stored_face_id, user_id)
        return {
            "id": user_id,
            "name": name,
            "email": email,
            "role": role,
            "relation": relation,
            "faceId": stored_face_id,
        }

    async def face_templates(self) -> List[Dict[str, Any]]:
        """Every stored template joined with its user."""
        return await self.db.fetch_all(
            "SELECT u.*, ft.template AS tpl, ft.face_id FROM users u "
            "JOIN face_templates ft ON ft.user_id = u.id ORDER BY ft.id"
        )

    async def find_by_face(self, template: str) -> Optional[Dict[str, Any]]:
        """Linear scan over stored templates; first match wins."""
        for r in await self.face_templates():
            if match_templates(template, r["tpl"]):
                return {**public_user(r), "faceId": r["face_id"]}
        return None

    async def find_by_pin(self, pin: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetch_one(
            "SELECT id, name, email, role, relation FROM users WHERE pin = ? LIMIT 1",
            (pin,),
        )
        return public_user(row) if row else None

    async def find_admin_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self.db.fetch_one(
            "SELECT id, name, email, role, relation, pin FROM users "
            "WHERE email = ? AND role = 'admin' LIMIT 1",
            (email,),
        )

    async def update(
        self,
        user_id: int,
        fields: Dict[str, Any],
        policies: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Update the given user columns and, if passed, replace policies."""
        columns = [(k, v) for k, v in fields.items() if k in USER_FIELDS]
        async with self.db.transaction() as tx:
            if columns:
                assignments = ", ".join(f"{k} = ?" for k, _ in columns)
                await tx.execute(
                    f"UPDATE users SET {assignments} WHERE id = ?",
                    [v for _, v in columns] + [user_id],
                )
            if policies is not None:
                await self.upsert_policies(tx, user_id, policies)

    async def delete(self, user_id: int) -> int:
        cursor = await self.db.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return cursor.rowcount

    async def ensure_super_admin(self, name: str, email: str, pin: str) -> bool:
        """Create or refresh the bootstrap admin. Skipped when email or pin is empty."""
        if not email or not pin:
            logger.info("SUPER_ADMIN_EMAIL or SUPER_ADMIN_PIN not set; skipping bootstrap")
            return False
        await self.db.execute(
            "INSERT INTO users (name, email, role, relation, pin, preferred_login) "
            "VALUES (?, ?, 'admin', 'superadmin', ?, 'pin') "
            "ON CONFLICT (email) DO UPDATE SET "
            "name = excluded.name, role = 'admin', relation = 'superadmin', "
            "pin = excluded.pin, preferred_login = 'pin'",
            (name or "Super Admin", email, pin),
        )
        logger.info("Super admin ensured for %s", email)
        return True
