"""
Industry profit rates (行業純益率) for expanded-audit filing.

The Ministry of Finance publishes a net profit rate per industry code every
year. Rows stored in the database take precedence; the reference table below
answers for codes that have not been loaded for a year.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models_accounting import IndustryProfitRate
from .repository import ProfitRateRepository
from .schemas import ProfitRateCreate, ProfitRateResponse, ProfitRateUpdate

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "預設參考值"

# code: (name, category, rate)
DEFAULT_PROFIT_RATES: dict[str, tuple[str, str, float]] = {
    # 資訊及通訊傳播業
    "6201": ("電腦程式設計業", "資訊及通訊傳播業", 0.06),
    "6202": ("電腦諮詢服務業", "資訊及通訊傳播業", 0.08),
    "6209": ("其他資訊服務業", "資訊及通訊傳播業", 0.07),
    "6311": ("資料處理業", "資訊及通訊傳播業", 0.08),
    # 批發及零售業
    "4610": ("綜合商品批發業", "批發及零售業", 0.04),
    "4619": ("其他批發業", "批發及零售業", 0.04),
    "4711": ("便利商店業", "批發及零售業", 0.03),
    "4719": ("其他綜合商品零售業", "批發及零售業", 0.03),
    "4741": ("資訊及通訊設備零售業", "批發及零售業", 0.04),
    # 住宿及餐飲業
    "5610": ("餐館業", "住宿及餐飲業", 0.06),
    "5620": ("外燴及團膳承包業", "住宿及餐飲業", 0.06),
    "5630": ("飲料店業", "住宿及餐飲業", 0.08),
    # 專業、科學及技術服務業
    "6910": ("法律服務業", "專業、科學及技術服務業", 0.15),
    "6920": ("會計及記帳服務業", "專業、科學及技術服務業", 0.12),
    "7010": ("企業總管理機構及管理顧問業", "專業、科學及技術服務業", 0.10),
    "7020": ("管理顧問業", "專業、科學及技術服務業", 0.10),
    "7111": ("建築師事務所", "專業、科學及技術服務業", 0.10),
    "7112": ("工程技術顧問業", "專業、科學及技術服務業", 0.08),
    "7310": ("廣告業", "專業、科學及技術服務業", 0.08),
    "7320": ("市場研究及民意調查業", "專業、科學及技術服務業", 0.10),
    "7410": ("設計業", "專業、科學及技術服務業", 0.10),
    "7490": ("其他專業、科學及技術服務業", "專業、科學及技術服務業", 0.08),
    # 製造業
    "1010": ("屠宰業", "製造業", 0.03),
    "1090": ("其他食品製造業", "製造業", 0.05),
    "2511": ("金屬結構製造業", "製造業", 0.05),
    "2599": ("其他金屬製品製造業", "製造業", 0.05),
    "2610": ("電子零組件製造業", "製造業", 0.06),
    "2620": ("電腦及周邊設備製造業", "製造業", 0.06),
    "2732": ("電線及電纜製造業", "製造業", 0.04),
    # 營建工程業
    "4100": ("建築工程業", "營建工程業", 0.03),
    "4210": ("土木工程業", "營建工程業", 0.04),
    "4321": ("電器及電信工程業", "營建工程業", 0.05),
    "4322": ("配管及冷凍空調工程業", "營建工程業", 0.05),
    "4329": ("其他建築設備安裝業", "營建工程業", 0.05),
    "4390": ("其他專門營造業", "營建工程業", 0.04),
    # 運輸及倉儲業
    "4931": ("汽車貨運業", "運輸及倉儲業", 0.05),
    "4940": ("汽車客運業", "運輸及倉儲業", 0.04),
    "5210": ("報關服務業", "運輸及倉儲業", 0.06),
    "5220": ("船務代理業", "運輸及倉儲業", 0.06),
    # 不動產業
    "6811": ("不動產買賣業", "不動產業", 0.10),
    "6812": ("不動產租賃業", "不動產業", 0.30),
    # 教育業
    "8550": ("補習教育業", "教育業", 0.10),
    "8560": ("教育輔助服務業", "教育業", 0.08),
    # 支援服務業
    "7810": ("人力仲介業", "支援服務業", 0.08),
    "7820": ("人力供應業", "支援服務業", 0.05),
    "8010": ("保全服務業", "支援服務業", 0.06),
    "8110": ("建築物清潔服務業", "支援服務業", 0.05),
}


def default_rate(industry_code: str, tax_year: int) -> Optional[dict]:
    """Reference rate for a code, shaped like a stored row"""
    entry = DEFAULT_PROFIT_RATES.get(industry_code)
    if not entry:
        return None
    name, category, rate = entry
    return {
        "id": None,
        "industry_code": industry_code,
        "industry_name": name,
        "industry_category": category,
        "profit_rate": rate,
        "tax_year": tax_year,
        "source": DEFAULT_SOURCE,
        "notes": None,
        "is_active": True,
    }


def serialize_rate(rate: IndustryProfitRate) -> dict:
    return ProfitRateResponse.model_validate(rate).model_dump()


class ProfitRateService:
    """Lookup and maintenance of industry profit rates"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProfitRateRepository()

    def get_rate(self, industry_code: str, tax_year: int) -> Optional[dict]:
        """An active stored row wins, otherwise the reference table"""
        row = self.repo.get_rate(self.db, industry_code, tax_year)
        if row:
            return serialize_rate(row)
        return default_rate(industry_code, tax_year)

    def list_rates(
        self,
        tax_year: Optional[int] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        year = tax_year or date.today().year
        if self.repo.count_for_year(self.db, year):
            rows = self.repo.get_rates(self.db, year, category, search, True, limit, offset)
            return [serialize_rate(row) for row in rows]

        results = []
        for code, (name, entry_category, _) in sorted(DEFAULT_PROFIT_RATES.items()):
            if search and search not in code and search.lower() not in name.lower():
                continue
            if category and entry_category != category:
                continue
            results.append(default_rate(code, year))
        return results[offset:offset + limit]

    def search_rates(self, query: str, tax_year: Optional[int] = None) -> list[dict]:
        if not query or len(query) < 2:
            raise HTTPException(status_code=400, detail="query must be at least 2 characters")
        return self.list_rates(tax_year, search=query, limit=20)

    def get_categories(self, tax_year: Optional[int] = None) -> list[str]:
        categories = self.repo.get_categories(self.db, tax_year)
        if categories:
            return categories
        return sorted({category for _, category, _ in DEFAULT_PROFIT_RATES.values()})

    def create_rate(self, data: ProfitRateCreate) -> IndustryProfitRate:
        if self.repo.exists(self.db, data.industry_code, data.tax_year):
            raise HTTPException(
                status_code=409,
                detail={
                    "message": f"行業代碼 {data.industry_code} 在年度 {data.tax_year} 已存在",
                    "code": "DUPLICATE",
                },
            )
        try:
            return self.repo.create_rate(self.db, **data.model_dump(), is_active=True)
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=409,
                detail={
                    "message": f"行業代碼 {data.industry_code} 在年度 {data.tax_year} 已存在",
                    "code": "DUPLICATE",
                },
            )

    def _get(self, rate_id: int) -> IndustryProfitRate:
        rate = self.repo.get_by_id(self.db, rate_id)
        if not rate:
            raise HTTPException(status_code=404, detail="Profit rate not found")
        return rate

    def update_rate(self, rate_id: int, data: ProfitRateUpdate) -> IndustryProfitRate:
        rate = self._get(rate_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(rate, key, value)
        return self.repo.save(self.db, rate)

    def delete_rate(self, rate_id: int) -> dict:
        rate = self._get(rate_id)
        rate.is_active = False
        self.repo.save(self.db, rate)
        return {"message": "Profit rate deleted"}

    def bulk_import(self, rates: list[ProfitRateCreate]) -> dict:
        result = {"success": 0, "failed": 0, "errors": []}
        for rate in rates:
            try:
                self.create_rate(rate)
                result["success"] += 1
            except HTTPException as e:
                result["failed"] += 1
                message = e.detail["message"] if isinstance(e.detail, dict) else e.detail
                result["errors"].append({"code": rate.industry_code, "error": message})
        logger.info(f"📥 Imported profit rates: {result['success']} ok, {result['failed']} failed")
        return result

    def copy_year(self, from_year: int, to_year: int) -> int:
        """Copy every rate of one year into another, skipping codes already present"""
        copied = 0
        for rate in self.list_rates(from_year, limit=10000):
            if self.repo.exists(self.db, rate["industry_code"], to_year):
                continue
            self.repo.create_rate(
                self.db,
                industry_code=rate["industry_code"],
                industry_name=rate["industry_name"],
                industry_category=rate["industry_category"],
                profit_rate=rate["profit_rate"],
                tax_year=to_year,
                source=f"從 {from_year} 年度複製",
                notes=rate["notes"],
                is_active=True,
            )
            copied += 1
        logger.info(f"📋 Copied {copied} profit rates from {from_year} to {to_year}")
        return copied
