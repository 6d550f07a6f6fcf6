"""Read-only access to the project media catalog."""

import logging
from typing import Any, List, Optional

from artifact_worker.models.media import MediaItem, Project
from artifact_worker.utils.errors import JobStoreError

logger = logging.getLogger(__name__)


class MediaCatalog:
    """Looks up projects and their media in Supabase."""

    def __init__(self, supabase_client: Any) -> None:
        self.supabase = supabase_client

    async def get_project(self, project_id: str) -> Optional[Project]:
        """
        Retrieve a project with its organization name.

        Args:
            project_id: The project to look up

        Returns:
            Project if found, None otherwise
        """
        try:
            result = (
                self.supabase.table("projects")
                .select("*")
                .eq("id", project_id)
                .limit(1)
                .execute()
            )
            if not result.data:
                return None
            row = result.data[0]

            organization_name = None
            if row.get("organization_id"):
                org = (
                    self.supabase.table("organizations")
                    .select("name")
                    .eq("id", row["organization_id"])
                    .limit(1)
                    .execute()
                )
                if org.data:
                    organization_name = org.data[0].get("name")
        except Exception as e:
            raise JobStoreError(f"Failed to get project {project_id}: {e}")

        return Project(
            id=row["id"],
            address_line1=row.get("address_line1"),
            city=row.get("city"),
            organization_name=organization_name,
        )

    async def list_media(self, project_id: str) -> List[MediaItem]:
        """List a project's media, newest first."""
        try:
            result = (
                self.supabase.table("media")
                .select("*")
                .eq("project_id", project_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise JobStoreError(f"Failed to list media for project {project_id}: {e}")

        return [
            MediaItem(
                id=row["id"],
                project_id=row.get("project_id"),
                key=row.get("key"),
                cdn_url=row.get("cdn_url"),
                filename=row.get("filename") or row["id"],
                size=row.get("size"),
                type=row.get("type") or "OTHER",
            )
            for row in result.data or []
        ]
