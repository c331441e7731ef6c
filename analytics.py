from datetime import date, datetime, timedelta
from typing import List

from fastapi import APIRouter, Depends

from auth import require_admin
from database import get_db

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def get_analytics_data(db) -> dict:
    sales = list(db["order"].aggregate([
        {"$group": {"_id": None, "totalSales": {"$sum": 1}, "totalRevenue": {"$sum": "$total_amount"}}},
    ]))
    totals = sales[0] if sales else {"totalSales": 0, "totalRevenue": 0}
    return {
        "users": db["user"].count_documents({}),
        "products": db["product"].count_documents({}),
        "totalSales": totals["totalSales"],
        "totalRevenue": totals["totalRevenue"],
    }


def dates_between(start: date, end: date) -> List[str]:
    days = (end - start).days
    return [(start + timedelta(days=i)).isoformat() for i in range(days + 1)]


def get_daily_sales_data(db, start_date: datetime, end_date: datetime) -> List[dict]:
    """Order count and revenue per UTC calendar day, zero-filled, oldest first."""
    report = db["order"].aggregate([
        {"$match": {"created_at": {"$gte": start_date, "$lte": end_date}}},
        {"$group": {
            "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
            "sales": {"$sum": 1},
            "revenue": {"$sum": "$total_amount"},
        }},
        {"$sort": {"_id": 1}},
    ])
    by_day = {row["_id"]: row for row in report}

    daily = []
    for day in dates_between(start_date.date(), end_date.date()):
        row = by_day.get(day)
        daily.append({
            "date": day,
            "sales": row["sales"] if row else 0,
            "revenue": row["revenue"] if row else 0,
        })
    return daily


@router.get("")
def get_analytics(db=Depends(get_db), user: dict = Depends(require_admin)):
    end_date = datetime.utcnow()
    start_date = end_date - timedelta(days=7)
    return {
        "analyticsData": get_analytics_data(db),
        "dailySalesData": get_daily_sales_data(db, start_date, end_date),
    }
