"""FastAPI dependencies for process-wide collaborators."""
from fastapi import Request

from ensogrow.services.advisor import PlantAdvisor


def get_advisor(request: Request) -> PlantAdvisor:
    """Generative AI client created once at startup."""
    return request.app.state.advisor
