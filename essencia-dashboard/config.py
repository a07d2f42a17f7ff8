# essencia-dashboard/config.py

"""
Central configuration for the Essencia Dashboard.
-- Team registry, provider ids and dashboard rules --
"""

# --- Provider Collections ---
REPORT_COLLECTION = "report__c"
DASHBOARD_CONFIG_COLLECTION = "dashboard__c"
DASHBOARD_CONFIG_DOC_ID = "dashboard_configuration"

# --- Catalog Items (owned count > 0 means the flag is on) ---
CATALOG_ITEMS = {
    "unlock_points": "E6F0O5f",
    "boost_secondary_1": "E6F0WGc",
    "boost_secondary_2": "E6K79Mt",
}

# --- Provider Team Ids ---
TEAM_IDS = {
    "CARTEIRA_0": "E6F5k30",
    "CARTEIRA_I": "E6F4sCh",
    "CARTEIRA_II": "E6F4O1b",
    "CARTEIRA_III": "E6F4Xf2",
    "CARTEIRA_IV": "E6F41Bb",
    "ER": "E500AbT",
}
ADMIN_TEAM_ID = "E6U1B1p"

# Checked in this order, longest names first so "carteira_iii" never matches "carteira_i".
TEAM_NAME_PATTERNS = [
    ("CARTEIRA_IV", ("carteira_iv", "carteira4", "carteira iv", "carteira 4")),
    ("CARTEIRA_III", ("carteira_iii", "carteira3", "carteira iii", "carteira 3")),
    ("CARTEIRA_II", ("carteira_ii", "carteira2", "carteira ii", "carteira 2")),
    ("CARTEIRA_I", ("carteira_i", "carteira1", "carteira i", "carteira 1")),
    ("CARTEIRA_0", ("carteira_0", "carteira0", "carteira 0")),
]

# --- Metrics ---
METRICS = {
    "atividade": {"display_name": "Atividade", "emoji": "🎯", "unit": "pontos", "stored_field": "atividadePercentual"},
    "reais_por_ativo": {"display_name": "Reais por Ativo", "emoji": "💰", "unit": "R$", "stored_field": "reaisPorAtivoPercentual"},
    "faturamento": {"display_name": "Faturamento", "emoji": "📈", "unit": "R$", "stored_field": "faturamentoPercentual"},
    "multimarcas_por_ativo": {"display_name": "Multimarcas por Ativo", "emoji": "🏷️", "unit": "marcas", "stored_field": "multimarcasPorAtivoPercentual"},
    "conversoes": {"display_name": "Conversões", "emoji": "🎯", "unit": "conversões", "stored_field": "conversoesPercentual"},
    "upa": {"display_name": "UPA", "emoji": "📊", "unit": "UPA", "stored_field": "upaPercentual"},
}

# --- Challenge Ids per metric (progress lives in player_status.challenge_progress) ---
CHALLENGE_IDS = {
    "CARTEIRA_0": {
        "conversoes": ["E6FQIjs"],
        "reais_por_ativo": ["E6Gm8RI", "E6Gke5g"],
        "faturamento": ["E6GglPq", "E6LIVVX"],
    },
    "CARTEIRA_I": {
        "atividade": ["E6FO12f", "E6FQIjs", "E6KQAoh"],
        "reais_por_ativo": ["E6Gm8RI", "E6Gke5g"],
        "faturamento": ["E6GglPq", "E6LIVVX"],
    },
    "CARTEIRA_II": {
        "reais_por_ativo": ["E6MTIIK"],
        "atividade": ["E6Gv58l", "E6MZw2L"],
        "multimarcas_por_ativo": ["E6MWJKs", "E6MWYj3"],
    },
    "CARTEIRA_III": {
        "faturamento": ["E6F8HMK", "E6Gahd4", "E6MLv3L"],
        "reais_por_ativo": ["E6Gm8RI", "E6Gke5g"],
        "multimarcas_por_ativo": ["E6MMH5v", "E6MM3eK"],
    },
    "CARTEIRA_IV": {
        "faturamento": ["E6F8HMK", "E6Gahd4", "E6MLv3L"],
        "reais_por_ativo": ["E6Gm8RI", "E6Gke5g"],
        "multimarcas_por_ativo": ["E6MMH5v", "E6MM3eK"],
    },
    "ER": {
        "faturamento": ["E6F8HMK", "E6Gahd4"],
        "reais_por_ativo": ["E6Gm8RI", "E6Gke5g"],
        "upa": ["E62x2PW"],
    },
}

# --- Unlock Rules ---
UNLOCK_THRESHOLD = 100
UNLOCK_RULE_THRESHOLD = "threshold"
UNLOCK_RULE_CATALOG_ITEM = "catalog_item"

# --- Team Registry: primary goal, two secondary goals, unlock rule ---
TEAM_GOALS = {
    "CARTEIRA_0": {
        "display_name": "Carteira 0",
        "unlock_rule": UNLOCK_RULE_CATALOG_ITEM,
        "primary": "conversoes",
        "secondary": ["reais_por_ativo", "faturamento"],
    },
    "CARTEIRA_I": {
        "display_name": "Carteira I",
        "unlock_rule": UNLOCK_RULE_CATALOG_ITEM,
        "primary": "atividade",
        "secondary": ["reais_por_ativo", "faturamento"],
    },
    # Reais por Ativo is volatile upstream, so unlock and boosts are computed here.
    "CARTEIRA_II": {
        "display_name": "Carteira II",
        "unlock_rule": UNLOCK_RULE_THRESHOLD,
        "primary": "reais_por_ativo",
        "secondary": ["atividade", "multimarcas_por_ativo"],
    },
    "CARTEIRA_III": {
        "display_name": "Carteira III",
        "unlock_rule": UNLOCK_RULE_CATALOG_ITEM,
        "primary": "faturamento",
        "secondary": ["reais_por_ativo", "multimarcas_por_ativo"],
    },
    "CARTEIRA_IV": {
        "display_name": "Carteira IV",
        "unlock_rule": UNLOCK_RULE_CATALOG_ITEM,
        "primary": "faturamento",
        "secondary": ["reais_por_ativo", "multimarcas_por_ativo"],
    },
    "ER": {
        "display_name": "ER",
        "unlock_rule": UNLOCK_RULE_CATALOG_ITEM,
        "primary": "faturamento",
        "secondary": ["reais_por_ativo", "upa"],
    },
}

# --- Progress Bar ---
# (lower bound inclusive, color); the last matching band wins.
COLOR_BANDS = [
    (0, "red"),
    (50, "yellow"),
    (100, "green"),
]
PROGRESS_BAR_CAP = 150

# --- Reporting Cycle ---
DEFAULT_CYCLE_DAYS = 21

# --- CSV Reports ---
CSV_BASE_COLUMNS = ["Player ID", "Dia do Ciclo", "Total Dias Ciclo"]
# Order matters: columns are read by position, one Meta/Atual/% triplet per metric.
CSV_METRIC_ORDER = ["faturamento", "reais_por_ativo", "multimarcas_por_ativo", "atividade", "conversoes", "upa"]
CSV_REQUIRED_METRICS = 4
CSV_MAX_FILE_SIZE = 10 * 1024 * 1024
CSV_ALLOWED_EXTENSIONS = (".csv",)

# --- Cycle History ---
TREND_MIN_CYCLES = 4
TREND_THRESHOLD = 5
# Summed change across compared metrics, in percentage points.
COMPARISON_BANDS = [
    (10, "Excelente melhoria! Performance geral aumentou {delta:.1f} pontos percentuais."),
    (0, "Boa evolução! Performance geral melhorou {delta:.1f} pontos percentuais."),
    (-10, "Performance estável com pequena variação de {delta:.1f} pontos percentuais."),
]
COMPARISON_DECLINE = "Performance declinou {delta:.1f} pontos percentuais. Foque nas áreas de melhoria."

# --- Cycle Change (provider schedulers, run in this order) ---
LOCKED_ITEM_ID = "E6F0MJ3"
CYCLE_CHANGE_SETTLE_SECONDS = 5
CYCLE_SCHEDULERS = [
    {
        "id": "68e7f93a06f77c5c2aad34f1",
        "name": "Ciclo de transição de pontos Desbloqueados para Carteira de pontos da Temporada",
        "description": "Transfere pontos desbloqueados para a carteira da temporada",
        "check": "points_cleared",
    },
    {
        "id": "68e7f8be06f77c5c2aad34d5",
        "name": "Ciclo de perda de pontos bloqueados ao fim do ciclo",
        "description": "Remove pontos bloqueados dos jogadores",
        "check": "locked_points_cleared",
    },
    {
        "id": "68de22de06f77c5c2aa9d2b6",
        "name": "Resetar action_log em Troca de Ciclo",
        "description": "Reseta o log de ações e progresso de desafios",
        "check": "action_log_cleared",
    },
    {
        "id": "68e803cf06f77c5c2aad37bc",
        "name": "Limpar itens - fim de ciclo",
        "description": "Remove itens virtuais, mantendo apenas o item Bloqueado (E6F0MJ3)",
        "check": "virtual_goods_cleared",
    },
]
