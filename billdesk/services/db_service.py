"""Async persistence service for bills

Every query is scoped to an owner id; a bill belonging to someone else
behaves exactly like a missing one.
"""

from typing import Any, Dict, List, Optional, Sequence
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
import logging

from billdesk.models.database import AsyncSessionLocal
from billdesk.models.bill import Bill as BillPydantic
from billdesk.models.db_models import Bill as BillDB
from billdesk.models.db_utils import pydantic_to_db_bill, db_to_pydantic_bill, bill_patch_to_columns

logger = logging.getLogger(__name__)


class DatabaseService:
    """Async service for bill table operations"""
    
    @staticmethod
    async def insert_bill(
        bill: BillPydantic,
        db: Optional[AsyncSession] = None
    ) -> BillPydantic:
        """
        Insert a new bill
        
        Args:
            bill: Pydantic Bill model (id is generated when missing)
            db: Async database session (optional, creates new if not provided)
            
        Returns:
            The stored bill, with id and timestamps filled in
        """
        if db:
            session = db
            should_close = False
        else:
            session = AsyncSessionLocal()
            should_close = True
        
        try:
            db_bill = pydantic_to_db_bill(bill)
            session.add(db_bill)
            await session.commit()
            await session.refresh(db_bill)
            
            logger.info(f"Bill created: {db_bill.id} ({db_bill.bill_number}) for owner {bill.owner_id}")
            return db_to_pydantic_bill(db_bill)
            
        except Exception as e:
            await session.rollback()
            logger.error(f"Error creating bill {bill.bill_number}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()
    
    @staticmethod
    async def get_bill(
        bill_id: str,
        owner_id: str,
        db: Optional[AsyncSession] = None
    ) -> Optional[BillPydantic]:
        """
        Get one bill
        
        Args:
            bill_id: Bill ID
            owner_id: Owner the bill must belong to
            db: Async database session (optional)
            
        Returns:
            Pydantic Bill model or None if not found
        """
        if db:
            session = db
            should_close = False
        else:
            session = AsyncSessionLocal()
            should_close = True
        
        try:
            result = await session.execute(
                select(BillDB).where(BillDB.id == bill_id, BillDB.owner_id == owner_id)
                .execution_options(populate_existing=True)
            )
            db_bill = result.scalar_one_or_none()
            
            if db_bill:
                return db_to_pydantic_bill(db_bill)
            return None
            
        except Exception as e:
            logger.error(f"Error getting bill {bill_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()
    
    @staticmethod
    async def list_bills(
        owner_id: str,
        db: Optional[AsyncSession] = None
    ) -> List[BillPydantic]:
        """
        List all bills of an owner, newest first
        
        Args:
            owner_id: Owner ID
            db: Async database session (optional)
            
        Returns:
            List of Pydantic Bill models ordered by created_at descending
        """
        if db:
            session = db
            should_close = False
        else:
            session = AsyncSessionLocal()
            should_close = True
        
        try:
            query = (
                select(BillDB)
                .where(BillDB.owner_id == owner_id)
                .order_by(BillDB.created_at.desc())
                .execution_options(populate_existing=True)
            )
            result = await session.execute(query)
            return [db_to_pydantic_bill(row) for row in result.scalars().all()]
            
        except Exception as e:
            logger.error(f"Error listing bills for owner {owner_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()
    
    @staticmethod
    async def update_bill(
        bill_id: str,
        owner_id: str,
        patch: Dict[str, Any],
        db: Optional[AsyncSession] = None
    ) -> bool:
        """
        Apply a partial update to a bill
        
        Args:
            bill_id: Bill ID
            owner_id: Owner ID
            patch: Field name -> new value (items may be LineItem models or dicts)
            db: Async database session (optional)
            
        Returns:
            True if updated, False if not found
        """
        if db:
            session = db
            should_close = False
        else:
            session = AsyncSessionLocal()
            should_close = True
        
        try:
            values = bill_patch_to_columns(patch)
            values["updated_at"] = datetime.utcnow()
            
            result = await session.execute(
                update(BillDB)
                .where(BillDB.id == bill_id, BillDB.owner_id == owner_id)
                .values(**values)
            )
            await session.commit()
            
            updated = (result.rowcount or 0) > 0
            if updated:
                logger.info(f"Bill updated: {bill_id} fields={sorted(values)}")
            return updated
            
        except Exception as e:
            await session.rollback()
            logger.error(f"Error updating bill {bill_id}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()
    
    @staticmethod
    async def delete_bill(
        bill_id: str,
        owner_id: str,
        db: Optional[AsyncSession] = None
    ) -> int:
        """
        Delete one bill
        
        Returns:
            Number of rows removed (0 when the bill does not exist)
        """
        return await DatabaseService.delete_bills([bill_id], owner_id, db=db)
    
    @staticmethod
    async def delete_bills(
        bill_ids: Sequence[str],
        owner_id: str,
        db: Optional[AsyncSession] = None
    ) -> int:
        """
        Delete several bills in one statement
        
        Args:
            bill_ids: Bill IDs; an empty sequence is a no-op
            owner_id: Owner ID
            db: Async database session (optional)
            
        Returns:
            Number of rows removed
        """
        ids = list(dict.fromkeys(bill_ids))
        if not ids:
            return 0
        
        if db:
            session = db
            should_close = False
        else:
            session = AsyncSessionLocal()
            should_close = True
        
        try:
            result = await session.execute(
                delete(BillDB).where(BillDB.id.in_(ids), BillDB.owner_id == owner_id)
            )
            await session.commit()
            
            deleted = result.rowcount or 0
            logger.info(f"Deleted {deleted} of {len(ids)} requested bill(s) for owner {owner_id}")
            return deleted
            
        except Exception as e:
            await session.rollback()
            logger.error(f"Error deleting bills {ids}: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                await session.close()
