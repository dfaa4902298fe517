"""
Campaign Store

Data access layer for campaigns - PostgreSQL (Async).
collected_amount is only ever changed by a single arithmetic UPDATE.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import asyncpg

from core.config_manager import ConfigManager
from core.postgres_client import AsyncPostgresClient

from .identifiers import new_campaign_code, new_campaign_id
from .models import (
    Campaign,
    CampaignCreateRequest,
    CampaignStats,
    CampaignStatus,
    CampaignType,
    CampaignUpdateRequest,
)
from .protocols import DonationValidationError

logger = logging.getLogger(__name__)


def _json_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value) or []
    return list(value)


class CampaignRepository:
    """Campaign data repository - PostgreSQL (Async)"""

    def __init__(self, db: Optional[AsyncPostgresClient] = None, config: Optional[ConfigManager] = None):
        if db is None:
            db = AsyncPostgresClient(service_name="donation_service")
        self.db = db
        self.config = config
        self.schema = "ledger"
        self.campaigns_table = "campaigns"
        self.donations_table = "donations"
        self.nullable_fields = {"project_id", "description", "start_date", "end_date"}

    async def health_check(self) -> bool:
        """Check repository health"""
        try:
            async with self.db:
                result = await self.db.query_row("SELECT 1 as healthy")
                return result is not None
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    # ====================
    # Reads
    # ====================

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get non-deleted campaign by ID"""
        query = f'''
            SELECT * FROM {self.schema}.{self.campaigns_table}
            WHERE campaign_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_id])
        return self._row_to_campaign(result) if result else None

    async def get_campaign_by_code(self, campaign_code: str) -> Optional[Campaign]:
        """Get non-deleted campaign by its shareable code"""
        query = f'''
            SELECT * FROM {self.schema}.{self.campaigns_table}
            WHERE campaign_code = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_code])
        return self._row_to_campaign(result) if result else None

    async def list_campaigns(
        self,
        project_id: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
        campaign_type: Optional[CampaignType] = None,
        is_public: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Campaign]:
        """List campaigns with filters, newest first"""
        try:
            conditions = ["is_deleted = FALSE"]
            params: List[Any] = []
            param_count = 0

            if project_id:
                param_count += 1
                conditions.append(f"project_id = ${param_count}")
                params.append(project_id)

            if status:
                param_count += 1
                conditions.append(f"status = ${param_count}")
                params.append(status.value)

            if campaign_type:
                param_count += 1
                conditions.append(f"campaign_type = ${param_count}")
                params.append(campaign_type.value)

            if is_public is not None:
                param_count += 1
                conditions.append(f"is_public = ${param_count}")
                params.append(is_public)

            if search:
                param_count += 1
                conditions.append(
                    f"(LOWER(name) LIKE LOWER(${param_count}) OR LOWER(campaign_code) LIKE LOWER(${param_count}))"
                )
                params.append(f"%{search}%")

            where_clause = " AND ".join(conditions)
            query = f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT ${param_count + 1} OFFSET ${param_count + 2}
            '''
            params.extend([limit, offset])

            async with self.db:
                results = await self.db.query(query, params=params)
            return [self._row_to_campaign(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing campaigns: {e}")
            raise

    # ====================
    # Writes
    # ====================

    async def create_campaign(self, request: CampaignCreateRequest, created_by: Optional[str] = None) -> Campaign:
        """Insert a campaign with a zero collected amount"""
        try:
            now = datetime.now(timezone.utc)
            query = f'''
                INSERT INTO {self.schema}.{self.campaigns_table} (
                    campaign_id, campaign_code, project_id, name, campaign_type,
                    description, image_urls, video_urls, start_date, end_date,
                    target_amount, collected_amount, status, is_public, gateway_enabled,
                    is_deleted, created_by, updated_by, created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7::jsonb, $8::jsonb, $9, $10,
                    $11, 0, $12, $13, $14, FALSE, $15, $15, $16, $16
                )
                RETURNING *
            '''
            params = [
                new_campaign_id(),
                request.campaign_code or new_campaign_code(),
                request.project_id,
                request.name,
                request.campaign_type.value,
                request.description,
                json.dumps(request.image_urls),
                json.dumps(request.video_urls),
                request.start_date,
                request.end_date,
                request.target_amount,
                request.status.value,
                request.is_public,
                request.gateway_enabled,
                created_by,
                now,
            ]

            async with self.db:
                result = await self.db.query_row(query, params=params)

            campaign = self._row_to_campaign(result)
            logger.info(f"Campaign created: {campaign.campaign_id} ({campaign.campaign_code})")
            return campaign

        except asyncpg.UniqueViolationError:
            raise DonationValidationError(
                f"Campaign code {params[1]} is already in use", field="campaign_code"
            )
        except Exception as e:
            logger.error(f"Error creating campaign: {e}", exc_info=True)
            raise

    async def update_campaign(
        self, campaign_id: str, request: CampaignUpdateRequest, updated_by: Optional[str] = None
    ) -> Optional[Campaign]:
        """Apply the fields set on the patch. Returns None when the campaign is missing."""
        updates = {
            k: v for k, v in request.model_dump(exclude_unset=True).items()
            if v is not None or k in self.nullable_fields
        }
        if not updates:
            return await self.get_campaign(campaign_id)

        set_clauses = []
        params: List[Any] = []
        for key, value in updates.items():
            params.append(self._to_column_value(key, value))
            cast = "::jsonb" if key in ("image_urls", "video_urls") else ""
            set_clauses.append(f"{key} = ${len(params)}{cast}")

        params.append(updated_by)
        set_clauses.append(f"updated_by = ${len(params)}")
        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        params.append(campaign_id)

        query = f'''
            UPDATE {self.schema}.{self.campaigns_table}
            SET {", ".join(set_clauses)}
            WHERE campaign_id = ${len(params)} AND is_deleted = FALSE
            RETURNING *
        '''
        async with self.db:
            result = await self.db.query_row(query, params=params)

        if result:
            logger.info(f"Campaign updated: {campaign_id} fields={sorted(updates)}")
        return self._row_to_campaign(result) if result else None

    async def delete_campaign(self, campaign_id: str, deleted_by: Optional[str] = None) -> bool:
        """Soft delete campaign"""
        query = f'''
            UPDATE {self.schema}.{self.campaigns_table}
            SET is_deleted = TRUE, updated_by = $2, updated_at = $3
            WHERE campaign_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            affected = await self.db.execute(query, params=[campaign_id, deleted_by, datetime.now(timezone.utc)])
        if affected:
            logger.info(f"Campaign deleted: {campaign_id}")
        return affected > 0

    async def adjust_collected(self, campaign_id: str, delta: Decimal) -> Optional[Decimal]:
        """
        Add delta (possibly negative) to the campaign's collected amount.

        One arithmetic UPDATE, so concurrent adjustments never lose an update.

        Returns:
            The new collected amount, or None when no live campaign matched.
        """
        query = f'''
            UPDATE {self.schema}.{self.campaigns_table}
            SET collected_amount = collected_amount + $2, updated_at = $3
            WHERE campaign_id = $1 AND is_deleted = FALSE
            RETURNING collected_amount
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_id, delta, datetime.now(timezone.utc)])

        if not result:
            return None
        new_total = Decimal(result["collected_amount"])
        logger.info(f"Campaign {campaign_id} collected adjusted by {delta}: now {new_total}")
        return new_total

    async def set_collected(self, campaign_id: str, amount: Decimal) -> bool:
        """Overwrite the collected amount with a recomputed value"""
        query = f'''
            UPDATE {self.schema}.{self.campaigns_table}
            SET collected_amount = $2, updated_at = $3
            WHERE campaign_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            affected = await self.db.execute(query, params=[campaign_id, amount, datetime.now(timezone.utc)])
        return affected > 0

    async def lock_collected(self, campaign_id: str) -> Optional[Decimal]:
        """Read the collected amount under a row lock (inside a transaction)"""
        query = f'''
            SELECT collected_amount FROM {self.schema}.{self.campaigns_table}
            WHERE campaign_id = $1 AND is_deleted = FALSE
            FOR UPDATE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_id])
        return Decimal(result["collected_amount"]) if result else None

    async def get_collected_amounts(self) -> Dict[str, Decimal]:
        """Recorded collected amount per non-deleted campaign"""
        query = f'''
            SELECT campaign_id, collected_amount FROM {self.schema}.{self.campaigns_table}
            WHERE is_deleted = FALSE
        '''
        async with self.db:
            results = await self.db.query(query)
        return {row["campaign_id"]: Decimal(row["collected_amount"]) for row in results}

    # ====================
    # Stats
    # ====================

    async def get_campaign_stats(self, campaign_id: str) -> CampaignStats:
        """Completed-donation statistics for a campaign"""
        query = f'''
            SELECT
                COUNT(*) AS total_donations,
                COALESCE(SUM(amount), 0) AS total_collected,
                COALESCE(SUM(CASE WHEN payment_mode = 'Online' THEN amount ELSE 0 END), 0) AS online_amount,
                COALESCE(SUM(CASE WHEN payment_mode = 'Offline' THEN amount ELSE 0 END), 0) AS offline_amount,
                COUNT(DISTINCT donor_name) AS unique_donors
            FROM {self.schema}.{self.donations_table}
            WHERE campaign_id = $1 AND status = 'Completed' AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_id])
        return CampaignStats(**(result or {}))

    # ====================
    # Helpers
    # ====================

    @staticmethod
    def _to_column_value(key: str, value: Any) -> Any:
        if key in ("image_urls", "video_urls"):
            return json.dumps(value or [])
        if key in ("campaign_type", "status") and value is not None:
            return value.value if hasattr(value, "value") else value
        return value

    def _row_to_campaign(self, row: Dict[str, Any]) -> Campaign:
        return Campaign(
            campaign_id=row["campaign_id"],
            campaign_code=row["campaign_code"],
            project_id=row.get("project_id"),
            name=row["name"],
            campaign_type=CampaignType(row.get("campaign_type") or CampaignType.FUNDRAISING.value),
            description=row.get("description"),
            image_urls=_json_list(row.get("image_urls")),
            video_urls=_json_list(row.get("video_urls")),
            start_date=row.get("start_date"),
            end_date=row.get("end_date"),
            target_amount=Decimal(row.get("target_amount") or 0),
            collected_amount=Decimal(row.get("collected_amount") or 0),
            status=CampaignStatus(row["status"]),
            is_public=row.get("is_public", True),
            gateway_enabled=row.get("gateway_enabled", True),
            is_deleted=row.get("is_deleted", False),
            created_by=row.get("created_by"),
            updated_by=row.get("updated_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
