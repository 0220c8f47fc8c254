from fastapi import Request

from siteqa.core.pipeline import RAGPipeline


def get_pipeline(request: Request) -> RAGPipeline:
    """The pipeline opened by the application lifespan."""
    return request.app.state.pipeline
