# tripsplit/routers/balances.py
# Балансы «кто кому должен» и дашборд. Всё считается на лету.

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.schemas.balance import DashboardOut, DetailedBalancesOut
from tripsplit.services.balances import get_dashboard, get_detailed_balances
from tripsplit.services.results import run_query
from tripsplit.utils.auth import get_current_user
from tripsplit.utils.responses import dump_as, envelope

router = APIRouter()


@router.get("/balances")
def balances(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, get_detailed_balances, user, serialize=dump_as(DetailedBalancesOut)))


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return envelope(run_query(db, get_dashboard, user, serialize=dump_as(DashboardOut)))
