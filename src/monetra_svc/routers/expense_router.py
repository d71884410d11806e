from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from monetra_svc import expense_service
from monetra_svc.models.base import get_db
from monetra_svc.models.user import User
from monetra_svc.schemas import (
    BalanceOut,
    BalanceUpdate,
    CategoryTotal,
    ExpenseCreate,
    ExpenseOut,
    ExpenseUpdate,
)
from monetra_svc.security import get_current_user

router = APIRouter()


@router.post("/add-expense", status_code=status.HTTP_201_CREATED, response_model=ExpenseOut)
def add_expense(payload: ExpenseCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return expense_service.add_expense(
        db,
        user_id=current_user.id,
        amount=payload.amount,
        date=payload.date,
        category=payload.category,
        title=payload.title,
    )


@router.get("/my-expenses", response_model=List[ExpenseOut])
def my_expenses(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return expense_service.get_expenses(db, current_user.id)


@router.get("/expenses/search", response_model=List[ExpenseOut])
def search_expenses(
    q: Optional[str] = None,
    category: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.search_expenses(
        db,
        current_user.id,
        text=q,
        category=category,
        start=start,
        end=end,
        min_amount=min_amount,
        max_amount=max_amount,
    )


@router.get("/expenses/categories", response_model=List[CategoryTotal])
def expense_categories(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.category_totals(db, current_user.id, start=start, end=end)


@router.put("/update-expense/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.update_expense(db, current_user.id, expense_id, payload.model_dump(exclude_unset=True))


@router.delete("/delete-expense/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(expense_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    expense_service.delete_expense(db, current_user.id, expense_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/balance", response_model=BalanceOut)
def get_balance(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return expense_service.get_balance_summary(db, current_user.id)


@router.put("/balance", response_model=BalanceOut)
def set_balance(payload: BalanceUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    expense_service.set_balance(db, current_user.id, payload.amount)
    return expense_service.get_balance_summary(db, current_user.id)
