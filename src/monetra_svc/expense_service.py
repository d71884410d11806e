import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from monetra_svc.errors import AppError, NotFound
from monetra_svc.models.expense import Expense
from monetra_svc.models.user import Balance

logger = logging.getLogger(__name__)


def _commit(db: Session, failure_message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(e, exc_info=True)
        raise AppError(failure_message) from e


def add_expense(db: Session, user_id: str, amount: Decimal, date: datetime, category: str, title: str) -> Expense:
    expense = Expense(user_id=user_id, amount=amount, date=date, category=category, title=title)
    db.add(expense)
    _commit(db, "Failed to add expense")
    db.refresh(expense)
    logger.info(f"Expense added for user: {user_id}")
    return expense


def get_expenses(db: Session, user_id: str) -> List[Expense]:
    return db.query(Expense).filter(Expense.user_id == user_id).order_by(Expense.date.desc()).all()


def get_expense(db: Session, user_id: str, expense_id: str) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id, Expense.user_id == user_id).first()
    if expense is None:
        raise NotFound("Expense not found or unauthorized")
    return expense


def update_expense(db: Session, user_id: str, expense_id: str, changes: Dict) -> Expense:
    expense = get_expense(db, user_id, expense_id)
    for field, value in changes.items():
        if value is not None:
            setattr(expense, field, value)
    _commit(db, "Failed to update expense")
    db.refresh(expense)
    logger.info(f"Expense updated: {expense_id} by user: {user_id}")
    return expense


def delete_expense(db: Session, user_id: str, expense_id: str) -> None:
    expense = get_expense(db, user_id, expense_id)
    db.delete(expense)
    _commit(db, "Failed to delete expense")
    logger.info(f"Expense deleted: {expense_id} by user: {user_id}")


def search_expenses(
    db: Session,
    user_id: str,
    text: Optional[str] = None,
    category: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
) -> List[Expense]:
    """
    Filter the user's expenses. ``text`` matches title or category,
    case-insensitively; date and amount bounds are inclusive.
    """
    query = db.query(Expense).filter(Expense.user_id == user_id)
    if text:
        pattern = f"%{text.lower()}%"
        query = query.filter(or_(func.lower(Expense.title).like(pattern), func.lower(Expense.category).like(pattern)))
    if category:
        query = query.filter(func.lower(Expense.category) == category.lower())
    if start:
        query = query.filter(Expense.date >= start)
    if end:
        query = query.filter(Expense.date <= end)
    if min_amount is not None:
        query = query.filter(Expense.amount >= min_amount)
    if max_amount is not None:
        query = query.filter(Expense.amount <= max_amount)
    return query.order_by(Expense.date.desc()).all()


def category_totals(db: Session, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Dict]:
    query = db.query(
        Expense.category,
        func.sum(Expense.amount).label("total"),
        func.count(Expense.id).label("count"),
    ).filter(Expense.user_id == user_id)
    if start:
        query = query.filter(Expense.date >= start)
    if end:
        query = query.filter(Expense.date <= end)
    rows = query.group_by(Expense.category).order_by(func.sum(Expense.amount).desc()).all()
    return [
        {"category": row.category, "total": Decimal(str(row.total or 0)), "count": row.count}
        for row in rows
    ]


def total_spent(db: Session, user_id: str) -> Decimal:
    total = db.query(func.sum(Expense.amount)).filter(Expense.user_id == user_id).scalar()
    return Decimal(str(total or 0))


def set_balance(db: Session, user_id: str, amount: Decimal) -> Balance:
    balance = db.query(Balance).filter(Balance.user_id == user_id).first()
    if balance:
        balance.amount = amount
    else:
        balance = Balance(user_id=user_id, amount=amount)
        db.add(balance)
    _commit(db, "Failed to update balance")
    db.refresh(balance)
    logger.info(f"Balance set for user: {user_id}")
    return balance


def get_balance_summary(db: Session, user_id: str) -> Dict[str, Decimal]:
    balance = db.query(Balance).filter(Balance.user_id == user_id).first()
    declared = Decimal(str(balance.amount)) if balance else Decimal("0")
    spent = total_spent(db, user_id)
    return {"balance": declared, "spent": spent, "remaining": declared - spent}
