from wikigen.schemas import AttackType, Rarity, Specialty, Stats


SPECIALTY_MAPPING: dict[str, Specialty] = {
    "撃破": Specialty.STUN,
    "強攻": Specialty.ATTACK,
    "異常": Specialty.ANOMALY,
    "支援": Specialty.SUPPORT,
    "防護": Specialty.DEFENSE,
    "命破": Specialty.RUPTURE,
}

STATS_MAPPING: dict[str, Stats] = {
    "氷属性": Stats.ICE,
    "炎属性": Stats.FIRE,
    "電気属性": Stats.ELECTRIC,
    "物理属性": Stats.PHYSICAL,
    "エーテル属性": Stats.ETHER,
    "霜烈属性": Stats.FROST_ATTRIBUTE,
    "玄墨属性": Stats.AURIC_INK,
}

ATTACK_TYPE_MAPPING: dict[str, AttackType] = {
    "打撃": AttackType.STRIKE,
    "斬撃": AttackType.SLASH,
    "刺突": AttackType.PIERCE,
}

# Labels used by the English list dataset.
ENGLISH_ATTACK_TYPE_MAPPING: dict[str, AttackType] = {
    "Strike": AttackType.STRIKE,
    "Slash": AttackType.SLASH,
    "Pierce": AttackType.PIERCE,
}

RARITY_MAPPING: dict[str, Rarity] = {
    "S": Rarity.S,
    "A": Rarity.A,
}

# Ascension combat stat label -> Attributes field
STAT_NAME_MAPPING: dict[str, str] = {
    "HP": "hp",
    "攻撃力": "atk",
    "防御力": "def_",
    "衝撃力": "impact",
    "会心率": "crit_rate",
    "会心ダメージ": "crit_dmg",
    "異常マスタリー": "anomaly_mastery",
    "異常掌握": "anomaly_proficiency",
    "貫通率": "pen_ratio",
    "エネルギー自動回復": "energy",
}

FACTIONS: dict[int, dict[str, str]] = {
    1: {"ja": "邪兎屋", "en": "Cunning Hares"},
    2: {"ja": "ヴィクトリア家政", "en": "Victoria Housekeeping Co."},
    3: {"ja": "白祇重工", "en": "Belobog Heavy Industries"},
    4: {"ja": "防衛軍・オボルス小隊", "en": "Defense Force - Obol Squad"},
    5: {"ja": "対ホロウ特別行動部第六課", "en": "Hollow Special Operations Section 6"},
    6: {"ja": "特務捜査班", "en": "Criminal Investigation Special Response Team"},
    7: {"ja": "カリュドーンの子", "en": "Sons of Calydon"},
    8: {"ja": "スターズ・オブ・リラ", "en": "Stars of Lyra"},
    9: {"ja": "防衛軍・シルバー小隊", "en": "Defense Force - Silver Squad"},
    10: {"ja": "モッキンバード", "en": "Mockingbird"},
    11: {"ja": "雲嶽山", "en": "Yunkui Summit"},
    12: {"ja": "怪啖屋", "en": "Spook Shack"},
}

FACTION_IDS_BY_NAME: dict[str, int] = {
    name: faction_id for faction_id, names in FACTIONS.items() for name in names.values()
}
