"""
Column name patterns.

Tables are ordered lists of (label, patterns); the first label with a
matching pattern wins. Each label carries an English pattern (case-insensitive,
matching whole snake_case words) and a Chinese pattern.

Both tables share one canonical priority for the labels they have in common:
status > category > amount > time > id. The description table slots its
extra labels in between, so an ambiguous name such as ``sales_channel``
resolves to ``category`` in both places.
"""

import re
from typing import List, Optional, Pattern, Sequence, Tuple

PatternTable = Sequence[Tuple[str, Sequence[Pattern]]]


def _words(*words: str) -> Pattern:
    return re.compile(r"(^|_)(" + "|".join(words) + r")($|_)", re.IGNORECASE)


STATUS_PATTERNS = (
    _words(
        "status", "state", "stage", "phase", "condition", "flag", "active", "enabled",
        "disabled", "approved", "rejected", "pending", "completed", "cancelled",
        "finished", "processing",
    ),
    re.compile(r"状态|阶段|条件|标志|启用|禁用|已批准|已拒绝|待处理|已完成|已取消|处理中"),
)

CATEGORY_PATTERNS = (
    _words(
        "category", "class", "group", "segment", "tag", "label", "type", "dept",
        "department", "region", "area", "location", "level", "grade", "rank", "tier",
        "source", "channel", "origin", "platform", "brand", "model", "version",
    ),
    re.compile(
        r"分类|类别|组别|标签|类型|部门|区域|地区|位置|等级|级别|层级|来源|渠道|平台|途径|品牌|型号|版本"
    ),
)

AMOUNT_PATTERNS = (
    _words(
        "amount", "price", "cost", "fee", "revenue", "sales", "profit", "payment",
        "balance", "total", "subtotal", "discount", "tax", "rate", "ratio", "percent",
        "percentage", "commission", "refund", "wage", "salary", "bonus", "income",
        "expense",
    ),
    re.compile(
        r"金额|价格|费用|收入|销售额|利润|支付|余额|总计|小计|折扣|税|汇率|税率|利率|比率|百分比|佣金|退款|工资|奖金"
    ),
)

TIME_PATTERNS = (
    _words(
        "time", "date", "timestamp", "datetime", "created", "updated", "modified",
        "deleted", "year", "month", "day", "hour", "minute", "second", "today",
        "yesterday", "tomorrow",
    ),
    re.compile(r"时间|日期|创建|更新|修改|删除|年|月|日|时|分|秒|今天|昨天|明天"),
)

ID_PATTERNS = (
    re.compile(
        r"_id$|^id$|uuid|guid|key|code|number$|^user.*id$|^member.*id$|^customer.*id$",
        re.IGNORECASE,
    ),
    re.compile(r"编号|代码$|用户ID|会员ID|客户ID"),
)

QUANTITY_PATTERNS = (
    _words("quantity", "qty", "count", "num", "number", "volume", "stock", "inventory"),
    re.compile(r"数量|库存|存货"),
)

CUSTOMER_PATTERNS = (
    _words("customer", "client", "user", "member", "buyer", "purchaser"),
    re.compile(r"客户|用户|会员|买家|购买者"),
)

PRODUCT_PATTERNS = (
    _words("product", "item", "goods", "sku", "commodity"),
    re.compile(r"商品|产品|货品|物品"),
)

ADDRESS_PATTERNS = (
    _words("address", "location", "province", "city", "district", "street", "zip", "postal"),
    re.compile(r"地址|位置|省|市|区|街道|邮编"),
)

ORDER_PATTERNS = (
    _words("order"),
    re.compile(r"订单"),
)

PHONE_PATTERNS = (
    re.compile(r"phone$", re.IGNORECASE),
    re.compile(r"mobile$", re.IGNORECASE),
    re.compile(r"tel$", re.IGNORECASE),
    re.compile(r"telephone$", re.IGNORECASE),
    re.compile(r"电话"),
    re.compile(r"手机"),
    re.compile(r"联系方式$"),
)

# Classification order used to decide which columns get profiled.
SEMANTIC_PATTERNS: PatternTable = (
    ("status", STATUS_PATTERNS),
    ("category", CATEGORY_PATTERNS),
    ("amount", AMOUNT_PATTERNS),
    ("time", TIME_PATTERNS),
    ("id", ID_PATTERNS),
)

# Order used to describe feature columns to the LLM.
DESCRIPTION_PATTERNS: PatternTable = (
    ("status", STATUS_PATTERNS),
    ("category", CATEGORY_PATTERNS),
    ("amount", AMOUNT_PATTERNS),
    ("quantity", QUANTITY_PATTERNS),
    ("time", TIME_PATTERNS),
    ("customer", CUSTOMER_PATTERNS),
    ("product", PRODUCT_PATTERNS),
    ("address", ADDRESS_PATTERNS),
    ("order", ORDER_PATTERNS),
    ("id", ID_PATTERNS),
)

FEATURE_DESCRIPTIONS = {
    "amount": "Monetary amount (currency units)",
    "quantity": "Quantity or count",
    "time": "Date / time value",
    "status": "Status flag",
    "category": "Category / classification",
    "customer": "Customer identifier",
    "product": "Product identifier",
    "address": "Address / location",
    "order": "Order identifier",
    "id": "Unique identifier",
}


def match_label(name: str, table: PatternTable) -> Optional[str]:
    """Return the first label in ``table`` whose patterns match ``name``."""
    for label, patterns in table:
        if any(pattern.search(name) for pattern in patterns):
            return label
    return None


def matches_any(name: str, patterns: Sequence[Pattern]) -> bool:
    return any(pattern.search(name) for pattern in patterns)


def labels_matching(name: str, table: PatternTable) -> List[str]:
    """All labels whose patterns match, in priority order."""
    return [label for label, patterns in table if matches_any(name, patterns)]
