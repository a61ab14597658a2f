"""Default output schemas for the monthly and quarterly summary calls.

Callers may override either one per request (``monthJSON`` / ``qtrJSON``).
"""

import json

from timeline_summary.llm import OutputFunction


def _activity_list(description: str) -> dict:
    return {
        "type": "array",
        "description": description,
        "items": {
            "type": "object",
            "properties": {
                "Id": {
                    "type": "string",
                    "description": "Salesforce Id of the specific task belonging to this header",
                },
                "LinkText": {
                    "type": "string",
                    "description": "Combination of 'Activity Date' : 'Short Description of the activity description'",
                },
            },
            "required": ["Id", "LinkText"],
            "additionalProperties": False,
        },
    }


def _insight_section(description: str) -> dict:
    return {
        "type": "array",
        "description": description,
        "items": {
            "type": "object",
            "properties": {
                "Summary": {
                    "type": "string",
                    "description": "Descriptive summary of the activities coming under this criteria",
                },
                "ActivityList": _activity_list(
                    "List of activities belonging to this header that has activity date in this month"
                ),
            },
            "required": ["Summary", "ActivityList"],
            "additionalProperties": False,
        },
    }


MONTHLY_SUMMARY_FUNCTION = {
    "name": "generate_monthly_activity_summary",
    "description": "Sales activity summary generator with structured insights and categorization",
    "parameters": {
        "type": "object",
        "properties": {
            "summary": {
                "type": "string",
                "description": (
                    "Descriptive summary of all activities grouped monthly based on activity date, "
                    "make sure to include activities only with the current month activity date, "
                    "highlighting key trends and patterns, should be strictly in HTML rich text format "
                    "having one header (strictly only within <h1> tag no bold) "
                    "'Sales Activity Summary for {Month} {Year}' and multiple bullet points "
                    "containing key insights"
                ),
            },
            "activityMapping": {
                "type": "object",
                "description": "Detailed activity summary and categorization with strategic mapping",
                "properties": {
                    "Key Themes of Customer Interaction": _insight_section(
                        "Strategic insights into the major themes of customer communication patterns "
                        "with deep, actionable subcategories"
                    ),
                    "Tone and Purpose of Interaction": _insight_section(
                        "Nuanced communication dynamics and strategic intent analysis"
                    ),
                    "Recommended Action and Next Steps": _insight_section(
                        "Forward-looking strategic recommendations with executable guidance"
                    ),
                },
                "required": [
                    "Key Themes of Customer Interaction",
                    "Tone and Purpose of Interaction",
                    "Recommended Action and Next Steps",
                ],
                "additionalProperties": False,
            },
            "activityCount": {
                "type": "integer",
                "description": "Total number of sales activities for the month based on activity date",
            },
        },
        "required": ["summary", "activityMapping", "activityCount"],
        "additionalProperties": False,
    },
}

QUARTERLY_SUMMARY_FUNCTION = {
    "name": "generate_quarterly_activity_summary",
    "description": (
        "Sales activity summary generator structured by year and quarter, "
        "including key insights and activity categorization"
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "yearlySummary": {
                "type": "array",
                "description": "Structured summary of activities grouped by year and quarter",
                "items": {
                    "type": "object",
                    "properties": {
                        "year": {"type": "integer", "description": "Year of the sales activity summary"},
                        "quarters": {
                            "type": "array",
                            "description": "List of quarterly summaries for the given year",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "quarter": {
                                        "type": "string",
                                        "description": "Quarter identifier (Q1, Q2, Q3 or Q4)",
                                    },
                                    "summary": {
                                        "type": "string",
                                        "description": (
                                            "Descriptive summary of activities for the quarter, in HTML "
                                            "format, with header (strictly only within <h1> tag no bold) "
                                            "'Sales Activity Summary for {Quarter} {Year}' and key insights "
                                            "as bullet points"
                                        ),
                                    },
                                    "activityMapping": {
                                        "type": "array",
                                        "description": "List of categorized activities with descriptions and related tasks",
                                        "items": {
                                            "type": "object",
                                            "properties": {
                                                "category": {
                                                    "type": "string",
                                                    "description": (
                                                        "Category of activities (e.g., Key Themes of Customer "
                                                        "Interaction, Tone and Purpose of Interaction, "
                                                        "Recommended Action and Next Steps)"
                                                    ),
                                                },
                                                "summary": {
                                                    "type": "string",
                                                    "description": "Descriptive summary of activities in this category",
                                                },
                                                "activityList": {
                                                    "type": "array",
                                                    "items": {
                                                        "type": "object",
                                                        "properties": {
                                                            "id": {"type": "string", "description": "Salesforce ID of the task"},
                                                            "linkText": {
                                                                "type": "string",
                                                                "description": "'Activity Date' : 'Short Description'",
                                                            },
                                                        },
                                                        "required": ["id", "linkText"],
                                                        "additionalProperties": False,
                                                    },
                                                },
                                            },
                                            "required": ["category", "summary", "activityList"],
                                            "additionalProperties": False,
                                        },
                                    },
                                    "activityCount": {
                                        "type": "integer",
                                        "description": "Total number of sales activities for the quarter",
                                    },
                                    "count": {
                                        "type": "integer",
                                        "description": "Numeric sum of activities recorded in the quarter",
                                    },
                                    "startdate": {
                                        "type": "string",
                                        "description": "Start date of the quarter in YYYY-MM-DD format",
                                    },
                                },
                                "required": [
                                    "quarter", "summary", "activityMapping",
                                    "activityCount", "count", "startdate",
                                ],
                                "additionalProperties": False,
                            },
                        },
                    },
                    "required": ["year", "quarters"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["yearlySummary"],
        "additionalProperties": False,
    },
}


def load_function(definition: dict | str | None, default: dict) -> OutputFunction:
    """Build an OutputFunction from a caller definition, falling back to *default*.

    Definitions use the ``{name, description, parameters}`` function format and
    may arrive as a JSON string.
    """
    if definition is None or definition == "":
        definition = default
    elif isinstance(definition, str):
        definition = json.loads(definition)

    if not isinstance(definition, dict) or not definition.get("name"):
        raise ValueError("Output schema definition must be an object with a name")

    return OutputFunction(
        name=definition["name"],
        description=definition.get("description", ""),
        parameters=definition.get("parameters") or {"type": "object", "properties": {}},
    )


DEFAULT_MONTHLY_PROMPT = (
    "You are an AI assistant generating structured sales activity summaries for Salesforce.\n"
    "Instructions:\n"
    "- Analyze the provided sales activity data and generate a monthly summary for {{YearMonth}}.\n"
    "- Extract the key themes of customer interactions based on email content.\n"
    "- Describe the tone and purpose of the interactions.\n"
    "- Identify any response trends and suggest relevant follow-up actions.\n"
    "- Format the summary in HTML suitable for a Salesforce Rich Text Area field, "
    "using only <h1>, <b>, <br> and <ul><li> tags."
)

DEFAULT_QUARTERLY_PROMPT = (
    "Using the provided monthly summary data, generate a consolidated summary for "
    "{{YearQuarter}} that combines insights from its months "
    "(Q1: Jan-Mar, Q2: Apr-Jun, Q3: Jul-Sep, Q4: Oct-Dec).\n"
    "- Report exactly one year entry containing exactly one quarter entry.\n"
    "- activityCount must be the numeric sum of the monthly activity counts.\n"
    "- startdate must be the first day of the quarter in YYYY-MM-DD format."
)
