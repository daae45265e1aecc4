"""
Gemini-backed insights: the daily actionable, the recommendation batch and
chat replies.

Every call returns an InsightResult instead of raising. The requester never
invents fallback content; callers pick the fallback (see the *_FALLBACK
constants and failed_recommendations()).
"""

import json
import logging
from dataclasses import dataclass
from datetime import date

import google.generativeai as genai

from .models import Recommendation, Priority, Role, SensorReading, WeatherSnapshot

logger = logging.getLogger(__name__)

ACTIONABLE_FALLBACK = "Could not generate AI insight at this time. Please check your connection and API key."
CHAT_FALLBACK = "I'm sorry, I encountered an error while processing your request. Please try again."
RECOMMENDATIONS_FAILED_TITLE = "AI Analysis Failed"
RECOMMENDATIONS_FAILED_DESCRIPTION = (
    "Could not generate AI recommendations at this time. "
    "Please check your connection and API key configuration, then try regenerating."
)
BATCH_SIZE = 3

FARM_LOCATION = "Franschhoek region, Western Cape, South Africa."

RECOMMENDATION_SCHEMA = {
    'type': 'ARRAY',
    'items': {
        'type': 'OBJECT',
        'properties': {
            'title': {
                'type': 'STRING',
                'description': "A short, catchy title for the recommendation, specific to agriculture.",
            },
            'description': {
                'type': 'STRING',
                'description': "A detailed explanation of the recommendation and why it's necessary given the data.",
            },
            'priority': {
                'type': 'STRING',
                'description': "The priority level: 'High', 'Medium', or 'Low'.",
            },
        },
        'required': ['title', 'description', 'priority'],
    },
}


@dataclass(frozen=True)
class InsightResult:
    value: object = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default):
        return self.value if self.ok else default

    @classmethod
    def success(cls, value) -> "InsightResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error) -> "InsightResult":
        return cls(error=str(error) or type(error).__name__)


def failed_recommendations() -> list[Recommendation]:
    """The single-entry batch shown when the AI call fails."""
    return [Recommendation(
        title=RECOMMENDATIONS_FAILED_TITLE,
        description=RECOMMENDATIONS_FAILED_DESCRIPTION,
        priority=Priority.HIGH,
    )]


def is_degraded(recommendations) -> bool:
    return len(recommendations) == 1 and recommendations[0].title == RECOMMENDATIONS_FAILED_TITLE


def _fmt_date(today: date) -> str:
    return f"{today:%B} {today.day}, {today.year}"


def format_soil(reading: SensorReading) -> str:
    return "\n".join([
        f"- Soil Moisture: {reading.moisture}%",
        f"- Soil Temperature: {reading.temperature}°C",
        f"- Electrical Conductivity (EC): {reading.ec} μS/cm",
        f"- pH Level: {reading.ph}",
        f"- Nitrogen (N): {reading.nitrogen} mg/kg",
        f"- Phosphorus (P): {reading.phosphorus} mg/kg",
        f"- Potassium (K): {reading.potassium} mg/kg",
    ])


def format_weather(weather: WeatherSnapshot) -> str:
    lines = [
        f"- Current Temperature: {weather.temperature}°C",
        f"- Humidity: {weather.humidity}%",
        f"- Recent Rainfall: {weather.rainfall} mm",
        f"- Wind Speed: {weather.wind_speed} km/h",
        f"- Weather Description: {weather.description}",
        "- Forecast:",
    ]
    for day in weather.forecast:
        lines.append(f"  - {day.day}: {day.temp}°C, {day.description}")
    return "\n".join(lines)


def format_trend(readings) -> str:
    newest, oldest = readings[0], readings[-1]
    return "\n".join([
        "Here's a summary of the soil data trend over the last few days:",
        f"- Moisture has gone from {oldest.moisture}% to {newest.moisture}%.",
        f"- pH has trended from {oldest.ph} to {newest.ph}.",
        f"- Nitrogen has trended from {oldest.nitrogen} to {newest.nitrogen}.",
    ])


def format_history(history) -> str:
    return "\n".join(
        f"{'Farmer' if turn.role is Role.USER else 'Assistant'}: {turn.text}" for turn in history
    )


def parse_recommendations(text: str) -> list[Recommendation]:
    """Parse the JSON array returned by the model. Raises ValueError on anything unusable."""
    text = (text or '').strip()
    if not text:
        raise ValueError("Received empty response from Gemini API.")
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of recommendations")
    try:
        recs = [Recommendation.from_dict(entry) for entry in data]
    except (KeyError, TypeError) as ex:
        raise ValueError(f"Malformed recommendation entry: {ex!r}") from ex
    if len(recs) < BATCH_SIZE:
        raise ValueError(f"Expected {BATCH_SIZE} recommendations, got {len(recs)}")
    return recs[:BATCH_SIZE]


def build_model(settings):
    genai.configure(api_key=settings.gemini_api_key)
    return genai.GenerativeModel(settings.gemini_model)


class InsightRequester:

    def __init__(self, model):
        self.model = model

    def _generate(self, prompt: str, **kwargs) -> str:
        response = self.model.generate_content(prompt, **kwargs)
        return (response.text or '').strip()

    def daily_actionable(self, reading: SensorReading, weather: WeatherSnapshot,
                         today: date | None = None) -> InsightResult:
        """One short instruction for today, from the newest reading and the weather."""
        today = today or date.today()
        prompt = f"""
As an expert agronomist advising a farmer, analyze the following latest soil sensor data and weather conditions for a farm.
Provide one single, concise, and direct "Actionable Insight" for the farmer to perform today.
Keep the insight to a maximum of two sentences. Start directly with the action.

FARM CONTEXT:
- Location: {FARM_LOCATION}
- Today's Date: {_fmt_date(today)}
- Instruction: Your advice should be practical for general farming operations. Consider the time of year (as indicated by the date) and the typical climate of the region.

Latest Soil Data:
{format_soil(reading)}

Current Weather Data:
{format_weather(weather)}

Example responses:
- "Soil is becoming compacted and moisture is high; consider aerating the topsoil to improve drainage and root health."
- "Given the forecast for a hot, dry week, a deep irrigation cycle is recommended to prevent crop stress."
- "Potassium levels are dropping. Plan for a potassium-rich fertilizer application to support overall plant health."
"""
        try:
            text = self._generate(prompt)
            if not text:
                raise ValueError("Received empty response from Gemini API.")
            return InsightResult.success(text)
        except Exception as ex:
            logger.error("Error fetching actionable insight from Gemini: %s", ex)
            return InsightResult.failure(ex)

    def recommendation_batch(self, readings, weather: WeatherSnapshot,
                             today: date | None = None) -> InsightResult:
        """Three structured recommendations. `readings` must be newest first."""
        today = today or date.today()
        try:
            if not readings:
                raise ValueError("No soil readings to analyse")
            prompt = f"""
You are an expert AI agronomy assistant. Analyze the latest soil data, historical trends, and weather forecast for a farm.
Generate a list of {BATCH_SIZE} actionable recommendations for a farmer.
For each recommendation, provide a title, a brief description, and a priority level ('High', 'Medium', or 'Low').
Base your recommendations on potential issues or opportunities you identify.

FARM CONTEXT:
- Location: {FARM_LOCATION}
- Today's Date: {_fmt_date(today)}
- Instruction: Your advice must be practical for general agriculture and take into account the local climate, time of year (as indicated by the date), and the provided weather forecast.

Latest Soil Data:
{format_soil(readings[0])}

Historical Trends:
{format_trend(readings)}

Weather Forecast:
{format_weather(weather)}
"""
            text = self._generate(prompt, generation_config={
                'response_mime_type': 'application/json',
                'response_schema': RECOMMENDATION_SCHEMA,
            })
            return InsightResult.success(parse_recommendations(text))
        except Exception as ex:
            logger.error("Error fetching detailed recommendations from Gemini: %s", ex)
            return InsightResult.failure(ex)

    def chat_reply(self, query: str, readings, weather: WeatherSnapshot, history,
                   today: date | None = None) -> InsightResult:
        """Plain-text answer to the farmer's question, with the conversation so far as context."""
        today = today or date.today()
        try:
            soil = format_soil(readings[0]) if readings else "- No soil readings available."
            prompt = f"""
You are an expert AI agronomy assistant in a chat with a farmer.
The farmer's query is: "{query}"

Use the following context, real-time data, and conversation history to provide a clear, helpful, and concise answer.
Always return your answer in plain text only: no markdown formatting, no bullet points, no bold or italic text, no emojis. Write full sentences and use line breaks for clarity.

FARM CONTEXT:
- Location: {FARM_LOCATION}
- Today's Date: {_fmt_date(today)}
- Instruction: Always consider the location, time of year, and provided data in your answers. Your advice should be for general agricultural purposes.

LATEST SOIL DATA:
{soil}

WEATHER FORECAST:
{format_weather(weather)}

CONVERSATION HISTORY:
{format_history(history)}

Your Answer (as Assistant):
"""
            text = self._generate(prompt)
            if not text:
                raise ValueError("Received empty response from Gemini API.")
            return InsightResult.success(text)
        except Exception as ex:
            logger.error("Error fetching chatbot response from Gemini: %s", ex)
            return InsightResult.failure(ex)
