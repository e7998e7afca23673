"""
Seed training corpus

Vietnamese transaction notes with clear category indicators, used to warm up
the classifier before enough user corrections exist.
"""

import random
from typing import Dict, List, Optional

# Default categories with high-confidence note templates
SEED_CATEGORIES: List[Dict] = [
    {
        "id": "cat_food",
        "name": "Ăn uống",
        "type": "OUT",
        "templates": [
            "ăn trưa", "ăn sáng", "ăn tối", "uống cà phê", "trà sữa",
            "cơm văn phòng", "phở bò", "bún chả", "nhà hàng", "quán nhậu",
            "cafe với bạn", "buffet cuối tuần",
        ],
    },
    {
        "id": "cat_transport",
        "name": "Di chuyển",
        "type": "OUT",
        "templates": [
            "đổ xăng", "đi grab", "taxi về nhà", "gửi xe", "vé xe buýt",
            "sửa xe máy", "rửa xe", "vé tàu", "grab đi làm",
        ],
    },
    {
        "id": "cat_shopping",
        "name": "Mua sắm",
        "type": "OUT",
        "templates": [
            "mua quần áo", "mua giày", "mua túi xách", "shopping online",
            "mua đồ shopee", "mua áo khoác", "mua mỹ phẩm", "đi siêu thị",
        ],
    },
    {
        "id": "cat_bills",
        "name": "Hóa đơn",
        "type": "OUT",
        "templates": [
            "tiền điện", "tiền nước", "tiền internet", "cước điện thoại",
            "tiền wifi", "phí chung cư", "nạp tiền điện thoại", "tiền nhà",
        ],
    },
    {
        "id": "cat_entertainment",
        "name": "Giải trí",
        "type": "OUT",
        "templates": [
            "xem phim", "đi karaoke", "nạp game", "vé concert",
            "đi bar", "vui chơi cuối tuần", "netflix", "spotify",
        ],
    },
    {
        "id": "cat_health",
        "name": "Sức khỏe",
        "type": "OUT",
        "templates": [
            "mua thuốc", "khám bệnh", "bệnh viện", "khám răng",
            "bác sĩ", "tập gym", "vitamin", "bảo hiểm y tế",
        ],
    },
    {
        "id": "cat_education",
        "name": "Học tập",
        "type": "OUT",
        "templates": [
            "mua sách", "học phí", "khóa học tiếng anh", "đóng tiền trường",
            "học online", "mua vở bút", "khóa học lập trình",
        ],
    },
    {
        "id": "cat_income",
        "name": "Thu nhập",
        "type": "IN",
        "templates": [
            "nhận lương", "lương tháng", "thưởng tết", "nhận thưởng",
            "được cho tiền", "thu tiền bán hàng", "kiếm thêm", "nhận tiền hoàn",
        ],
    },
]

AMOUNT_SUFFIXES = ["", "20k", "35k", "50k", "120k", "250k", "500k", "1tr", "1tr5", "2tr", "15tr"]


def seed_category_directory() -> List[Dict[str, str]]:
    """Seed categories in category-directory shape"""
    return [{"_id": c["id"], "name": c["name"], "type": c["type"]} for c in SEED_CATEGORIES]


def generate_note(template: str, rng: random.Random) -> str:
    suffix = rng.choice(AMOUNT_SUFFIXES)
    return f"{template} {suffix}".strip()


def generate_seed_samples(
    samples_per_category: int = 30,
    seed: Optional[int] = 42,
) -> List[Dict[str, str]]:
    """
    Generate labelled seed notes.

    Args:
        samples_per_category: Notes generated per category
        seed: Random seed for reproducible corpora

    Returns:
        List of ``{"text", "category_id", "category_name", "io"}`` dicts, shuffled
    """
    rng = random.Random(seed)
    rows = []
    for category in SEED_CATEGORIES:
        for _ in range(samples_per_category):
            rows.append({
                "text": generate_note(rng.choice(category["templates"]), rng),
                "category_id": category["id"],
                "category_name": category["name"],
                "io": category["type"],
            })
    rng.shuffle(rows)
    return rows
