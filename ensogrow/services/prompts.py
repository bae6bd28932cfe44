"""Prompt templates for the generative model."""
import json
from typing import Any, Dict, List

STEP_TEMPLATE = """{
        "title": "Step title",
        "description": "Detailed description of what needs to be done",
        "estimatedTime": "Time estimate (e.g., '2 weeks', '1 month')",
        "isCompleted": false
      }"""

JOURNEY_OUTLINE = """A detailed step-by-step journey of growing this plant, including:
   - Preparation steps (soil, tools, etc.)
   - Planting process
   - Daily/weekly care routine
   - Growth milestones
   - Harvesting instructions (if applicable)"""


def _conditions(location: str, sunlight_hours: float, available_space: str) -> str:
    return f"""Given the following conditions:
- Location: {location}
- Hours of direct sunlight: {sunlight_hours:g} hours
- Available space: {available_space}"""


def build_recommendation_prompt(location: str, sunlight_hours: float, available_space: str) -> str:
    """Prompt for a batch of plants suited to the survey conditions."""
    return f"""{_conditions(location, sunlight_hours, available_space)}

Recommend 6-8 plants that would grow well in these conditions. For each plant, include:
1. Plant name
2. A brief description
3. Success rate in these specific conditions, as a percentage
4. {JOURNEY_OUTLINE}
5. Growing difficulty level

IMPORTANT: Return ONLY a valid JSON array of objects with these exact properties:
[
  {{
    "isValid": true,
    "name": "Plant name",
    "description": "Brief description",
    "successRate": "success rate in percentage",
    "steps": [
      {STEP_TEMPLATE}
    ],
    "difficultyLevel": "Difficulty level"
  }}
]

Each step should be a complete instruction that can be tracked independently.
Do not include any markdown formatting, code blocks, or additional text. Return ONLY the JSON array."""


def build_custom_plant_prompt(location: str, sunlight_hours: float, available_space: str, plant_name: str) -> str:
    """Prompt for one named plant, letting the model reject non-plants."""
    return f"""{_conditions(location, sunlight_hours, available_space)}
- Plant to grow: {plant_name}

First, validate whether "{plant_name}" is a real plant. If it is not a real plant or contains garbage values, return the error response below.

If it is a valid plant, describe how to grow it in these conditions. Include:
1. A brief description of the plant
2. Success rate in these specific conditions, as a percentage
3. {JOURNEY_OUTLINE}
4. Growing difficulty level

IMPORTANT: Return ONLY a valid JSON object with these exact properties:
{{
  "isValid": true,
  "name": "{plant_name}",
  "description": "Brief description",
  "successRate": "success rate in percentage",
  "steps": [
    {STEP_TEMPLATE}
  ],
  "difficultyLevel": "Difficulty level"
}}

If the plant name is invalid, return:
{{
  "isValid": false,
  "error": "Invalid plant name. Please provide a valid plant name."
}}

Each step should be a complete instruction that can be tracked independently.
Do not include any markdown formatting, code blocks, or additional text. Return ONLY the JSON object."""


def build_diagnosis_prompt(plant_name: str, steps: List[Dict[str, Any]]) -> str:
    """Prompt for a photo check-in on a plant being grown."""
    progress = [
        {"title": step.get("title"), "isCompleted": bool(step.get("isCompleted"))}
        for step in steps
    ]
    return f"""You are an experienced horticulturist. The attached photo shows a {plant_name} plant that a home gardener is growing.

Their care plan and progress so far:
{json.dumps(progress, indent=2)}

Examine the photo for signs of disease, pests, nutrient deficiency, over- or under-watering, or other problems.

IMPORTANT: Return ONLY a valid JSON object with these exact properties:
{{
  "needsAttention": true or false,
  "diagnosis": "Short explanation of what you see",
  "steps": [
    {STEP_TEMPLATE}
  ]
}}

Only include "steps" when "needsAttention" is true; they should be concrete remediation actions to do next.
Do not include any markdown formatting, code blocks, or additional text. Return ONLY the JSON object."""
