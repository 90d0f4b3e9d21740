"""Garden backend REST paths used by the HTTP collaborators."""


# Sensors
def latest_readings(garden_id: int) -> str:
    return f"/gardens/{garden_id}/sensors/latest-readings"


# Alerts
def garden_alerts(garden_id: int) -> str:
    return f"/gardens/{garden_id}/alerts"


def alert_detail(alert_id: int) -> str:
    return f"/alerts/{alert_id}"


# Watering schedules
def garden_schedules(garden_id: int) -> str:
    return f"/gardens/{garden_id}/watering-schedules"


def upcoming_schedules(garden_id: int) -> str:
    return f"/gardens/{garden_id}/watering-schedules/upcoming"


def auto_generate_schedule(garden_id: int) -> str:
    return f"/gardens/{garden_id}/watering-schedules/auto"


def schedule_detail(schedule_id: int) -> str:
    return f"/watering-schedules/{schedule_id}"


def complete_schedule(schedule_id: int) -> str:
    return f"/watering-schedules/{schedule_id}/complete"


def skip_schedule(schedule_id: int) -> str:
    return f"/watering-schedules/{schedule_id}/skip"


# AI watering decisions
AI_CONNECTION_TEST = "/watering-decision/test-ai"


def watering_decision(garden_id: int) -> str:
    return f"/gardens/{garden_id}/watering-decision"


def optimal_amount(garden_id: int) -> str:
    return f"/gardens/{garden_id}/watering-decision/optimal-amount"


def decision_stats(garden_id: int) -> str:
    return f"/gardens/{garden_id}/watering-decision/stats"
