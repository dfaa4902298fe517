"""
Donation Store

Data access layer for donations - PostgreSQL (Async).
Status transitions are conditional UPDATEs so that concurrent callers
serialize on the row lock and exactly one of them wins.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config_manager import ConfigManager
from core.postgres_client import AsyncPostgresClient

from .identifiers import new_donation_id, new_receipt_number
from .models import (
    CampaignDonationSummary,
    DeletedDonation,
    Donation,
    DonationChannel,
    DonationDraft,
    DonationFilter,
    DonationStatus,
    DonationUpdateRequest,
    DonorType,
    PaymentMode,
    TransitionResult,
)

logger = logging.getLogger(__name__)


class DonationRepository:
    """Donation data repository - PostgreSQL (Async)"""

    def __init__(self, db: Optional[AsyncPostgresClient] = None, config: Optional[ConfigManager] = None):
        if db is None:
            db = AsyncPostgresClient(service_name="donation_service")
        self.db = db
        self.config = config
        self.schema = "ledger"
        self.donations_table = "donations"

    # ====================
    # Create / Read
    # ====================

    async def create_donation(self, draft: DonationDraft) -> Donation:
        """
        Insert a donation.

        Completed drafts (offline entries) receive their receipt number here;
        pending drafts get one only when they complete.
        """
        try:
            now = datetime.now(timezone.utc)
            completed = draft.status == DonationStatus.COMPLETED
            query = f'''
                INSERT INTO {self.schema}.{self.donations_table} (
                    donation_id, campaign_id, project_id,
                    donor_type, donor_name, phone_number, email, tax_id, address,
                    channel, payment_mode, amount, currency, status, receipt_number,
                    gateway_order_id, transaction_reference, cheque_number, cheque_date,
                    bank_name, branch_name, purpose, tax_exempt_applicable, remarks,
                    donation_date, completed_at, is_deleted, created_by, updated_by,
                    created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                    $11, $12, $13, $14, $15, $16, $17, $18, $19, $20,
                    $21, $22, $23, $24, $25, $26, FALSE, $27, $27, $28, $28
                )
                RETURNING *
            '''
            params = [
                new_donation_id(),
                draft.campaign_id,
                draft.project_id,
                draft.donor_type.value,
                draft.donor_name,
                draft.phone_number,
                draft.email,
                draft.tax_id,
                draft.address,
                draft.channel.value,
                draft.payment_mode.value,
                draft.amount,
                draft.currency,
                draft.status.value,
                new_receipt_number(now) if completed else None,
                draft.gateway_order_id,
                draft.transaction_reference,
                draft.cheque_number,
                draft.cheque_date,
                draft.bank_name,
                draft.branch_name,
                draft.purpose,
                draft.tax_exempt_applicable,
                draft.remarks,
                draft.donation_date or now,
                now if completed else None,
                draft.created_by,
                now,
            ]

            async with self.db:
                result = await self.db.query_row(query, params=params)

            donation = self._row_to_donation(result)
            logger.info(
                f"Donation created: {donation.donation_id} campaign={donation.campaign_id} "
                f"channel={donation.channel.value} status={donation.status.value}"
            )
            return donation

        except Exception as e:
            logger.error(f"Error creating donation: {e}", exc_info=True)
            raise

    async def get_donation(self, donation_id: str) -> Optional[Donation]:
        """Get non-deleted donation by ID"""
        query = f'''
            SELECT * FROM {self.schema}.{self.donations_table}
            WHERE donation_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[donation_id])
        return self._row_to_donation(result) if result else None

    async def find_by_gateway_order_id(self, order_id: str) -> Optional[Donation]:
        """Get the donation created for a gateway order"""
        query = f'''
            SELECT * FROM {self.schema}.{self.donations_table}
            WHERE gateway_order_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[order_id])
        return self._row_to_donation(result) if result else None

    # ====================
    # Status transitions
    # ====================

    async def transition_to_completed(
        self, donation_id: str, payment_id: str, signature: str
    ) -> TransitionResult:
        """
        Pending -> Completed, assigning a fresh receipt number.

        Returns ALREADY_COMPLETED without side effects when another caller won.
        """
        now = datetime.now(timezone.utc)
        query = f'''
            UPDATE {self.schema}.{self.donations_table}
            SET status = 'Completed',
                receipt_number = $2,
                gateway_payment_id = $3,
                gateway_signature = $4,
                completed_at = $5,
                updated_at = $5
            WHERE donation_id = $1 AND status = 'Pending' AND is_deleted = FALSE
            RETURNING donation_id
        '''
        async with self.db:
            result = await self.db.query_row(
                query, params=[donation_id, new_receipt_number(now), payment_id, signature, now]
            )

        if result:
            logger.info(f"Donation {donation_id} completed (payment {payment_id})")
            return TransitionResult.SUCCESS
        return await self._classify_missed_transition(donation_id)

    async def transition_to_failed(self, donation_id: str, reason: str) -> TransitionResult:
        """Pending -> Failed. Terminal donations are left untouched."""
        now = datetime.now(timezone.utc)
        query = f'''
            UPDATE {self.schema}.{self.donations_table}
            SET status = 'Failed', failure_reason = $2, updated_at = $3
            WHERE donation_id = $1 AND status = 'Pending' AND is_deleted = FALSE
            RETURNING donation_id
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[donation_id, reason, now])

        if result:
            logger.info(f"Donation {donation_id} failed: {reason}")
            return TransitionResult.SUCCESS
        return await self._classify_missed_transition(donation_id)

    async def _classify_missed_transition(self, donation_id: str) -> TransitionResult:
        query = f'''
            SELECT status FROM {self.schema}.{self.donations_table}
            WHERE donation_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            row = await self.db.query_row(query, params=[donation_id])
        if not row:
            return TransitionResult.NOT_FOUND
        if row["status"] == DonationStatus.COMPLETED.value:
            return TransitionResult.ALREADY_COMPLETED
        return TransitionResult.NOT_PENDING

    # ====================
    # Delete / Update
    # ====================

    async def soft_delete(self, donation_id: str, deleted_by: Optional[str] = None) -> Optional[DeletedDonation]:
        """
        Mark a donation deleted.

        Conditional on the donation not being deleted yet, so at most one
        caller observes the prior status and can reverse the campaign credit.
        """
        query = f'''
            UPDATE {self.schema}.{self.donations_table}
            SET is_deleted = TRUE, updated_by = $2, updated_at = $3
            WHERE donation_id = $1 AND is_deleted = FALSE
            RETURNING donation_id, campaign_id, status, amount
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[donation_id, deleted_by, datetime.now(timezone.utc)])

        if not result:
            return None
        logger.info(f"Donation deleted: {donation_id} (was {result['status']})")
        return DeletedDonation(
            donation_id=result["donation_id"],
            campaign_id=result["campaign_id"],
            prior_status=DonationStatus(result["status"]),
            amount=Decimal(result["amount"]),
        )

    async def update_donation(
        self, donation_id: str, request: DonationUpdateRequest, updated_by: Optional[str] = None
    ) -> Optional[Donation]:
        """Patch non-ledger fields. Amount, status, channel and campaign never change here."""
        updates = request.model_dump(exclude_unset=True)
        if "donor_name" in updates and not updates["donor_name"]:
            updates.pop("donor_name")
        if not updates:
            return await self.get_donation(donation_id)

        if "tax_id" in updates:
            updates["tax_exempt_applicable"] = bool(updates["tax_id"])

        set_clauses = []
        params: List[Any] = []
        for key, value in updates.items():
            params.append(value.value if hasattr(value, "value") else value)
            set_clauses.append(f"{key} = ${len(params)}")

        params.append(updated_by)
        set_clauses.append(f"updated_by = ${len(params)}")
        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        params.append(donation_id)

        query = f'''
            UPDATE {self.schema}.{self.donations_table}
            SET {", ".join(set_clauses)}
            WHERE donation_id = ${len(params)} AND is_deleted = FALSE
            RETURNING *
        '''
        async with self.db:
            result = await self.db.query_row(query, params=params)
        return self._row_to_donation(result) if result else None

    # ====================
    # Queries
    # ====================

    async def list_donations(self, filters: DonationFilter) -> List[Donation]:
        """List donations with filters, newest first"""
        try:
            conditions = ["is_deleted = FALSE"]
            params: List[Any] = []

            def _add(clause: str, value: Any) -> None:
                params.append(value)
                conditions.append(clause.format(p=f"${len(params)}"))

            if filters.campaign_id:
                _add("campaign_id = {p}", filters.campaign_id)
            if filters.project_id:
                _add("project_id = {p}", filters.project_id)
            if filters.status:
                _add("status = {p}", filters.status.value)
            if filters.channel:
                _add("channel = {p}", filters.channel.value)
            if filters.payment_mode:
                _add("payment_mode = {p}", filters.payment_mode.value)
            if filters.search:
                _add(
                    "(LOWER(donor_name) LIKE LOWER({p}) OR LOWER(COALESCE(email, '')) LIKE LOWER({p}) "
                    "OR COALESCE(receipt_number, '') LIKE {p})",
                    f"%{filters.search}%",
                )
            if filters.date_from:
                _add("donation_date >= {p}", filters.date_from)
            if filters.date_to:
                _add("donation_date <= {p}", filters.date_to)

            where_clause = " AND ".join(conditions)
            query = f'''
                SELECT * FROM {self.schema}.{self.donations_table}
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
            '''
            params.extend([filters.limit, filters.offset])

            async with self.db:
                results = await self.db.query(query, params=params)
            return [self._row_to_donation(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing donations: {e}")
            raise

    async def get_campaign_summary(self, campaign_id: str) -> CampaignDonationSummary:
        """Completed totals per channel, pending total and unique donors"""
        query = f'''
            SELECT
                COUNT(*) FILTER (WHERE status = 'Completed') AS total_donations,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed'), 0) AS total_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed' AND channel = 'GATEWAY'), 0) AS online_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed' AND channel = 'CASH'), 0) AS cash_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed' AND channel = 'CHEQUE'), 0) AS cheque_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed' AND channel = 'BANK'), 0) AS bank_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed' AND channel = 'UPI'), 0) AS upi_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Completed' AND channel = 'IN_KIND'), 0) AS in_kind_amount,
                COALESCE(SUM(amount) FILTER (WHERE status = 'Pending'), 0) AS pending_amount,
                COUNT(DISTINCT donor_name) FILTER (WHERE status = 'Completed') AS unique_donors
            FROM {self.schema}.{self.donations_table}
            WHERE campaign_id = $1 AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_id])
        return CampaignDonationSummary(campaign_id=campaign_id, **(result or {}))

    async def get_recent_donations(self, campaign_id: str, limit: int = 10) -> List[Donation]:
        """Most recent completed donations of a campaign"""
        query = f'''
            SELECT * FROM {self.schema}.{self.donations_table}
            WHERE campaign_id = $1 AND status = 'Completed' AND is_deleted = FALSE
            ORDER BY donation_date DESC, created_at DESC
            LIMIT $2
        '''
        async with self.db:
            results = await self.db.query(query, params=[campaign_id, limit])
        return [self._row_to_donation(row) for row in results]

    async def sum_completed_by_campaign(self) -> Dict[str, Decimal]:
        """Recomputed collected amount for every campaign with completed donations"""
        query = f'''
            SELECT campaign_id, COALESCE(SUM(amount), 0) AS total
            FROM {self.schema}.{self.donations_table}
            WHERE status = 'Completed' AND is_deleted = FALSE
            GROUP BY campaign_id
        '''
        async with self.db:
            results = await self.db.query(query)
        return {row["campaign_id"]: Decimal(row["total"]) for row in results}

    async def sum_completed_for_campaign(self, campaign_id: str) -> Decimal:
        """Recomputed collected amount for one campaign"""
        query = f'''
            SELECT COALESCE(SUM(amount), 0) AS total
            FROM {self.schema}.{self.donations_table}
            WHERE campaign_id = $1 AND status = 'Completed' AND is_deleted = FALSE
        '''
        async with self.db:
            result = await self.db.query_row(query, params=[campaign_id])
        return Decimal(result["total"]) if result else Decimal("0")

    async def find_stale_pending(self, older_than: datetime) -> List[Donation]:
        """Pending gateway donations created before the cutoff"""
        query = f'''
            SELECT * FROM {self.schema}.{self.donations_table}
            WHERE status = 'Pending' AND channel = 'GATEWAY'
              AND is_deleted = FALSE AND created_at < $1
            ORDER BY created_at
        '''
        async with self.db:
            results = await self.db.query(query, params=[older_than])
        return [self._row_to_donation(row) for row in results]

    # ====================
    # Helpers
    # ====================

    def _row_to_donation(self, row: Dict[str, Any]) -> Donation:
        return Donation(
            donation_id=row["donation_id"],
            campaign_id=row["campaign_id"],
            project_id=row.get("project_id"),
            donor_type=DonorType(row.get("donor_type") or DonorType.INDIVIDUAL.value),
            donor_name=row["donor_name"],
            phone_number=row.get("phone_number"),
            email=row.get("email"),
            tax_id=row.get("tax_id"),
            address=row.get("address"),
            channel=DonationChannel(row["channel"]),
            payment_mode=PaymentMode(row["payment_mode"]),
            amount=Decimal(row["amount"]),
            currency=row.get("currency") or "INR",
            status=DonationStatus(row["status"]),
            receipt_number=row.get("receipt_number"),
            gateway_order_id=row.get("gateway_order_id"),
            gateway_payment_id=row.get("gateway_payment_id"),
            gateway_signature=row.get("gateway_signature"),
            failure_reason=row.get("failure_reason"),
            transaction_reference=row.get("transaction_reference"),
            cheque_number=row.get("cheque_number"),
            cheque_date=row.get("cheque_date"),
            bank_name=row.get("bank_name"),
            branch_name=row.get("branch_name"),
            purpose=row.get("purpose"),
            tax_exempt_applicable=row.get("tax_exempt_applicable", False),
            remarks=row.get("remarks"),
            donation_date=row.get("donation_date"),
            completed_at=row.get("completed_at"),
            is_deleted=row.get("is_deleted", False),
            created_by=row.get("created_by"),
            updated_by=row.get("updated_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
