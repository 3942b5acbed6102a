from fastapi import Request

from postlift.agent.optimization import OptimizationAgent
from postlift.services.experiments import ExperimentManager


def get_manager(request: Request) -> ExperimentManager:
    """Experiment manager built by the application factory."""
    return request.app.state.experiment_manager


def get_agent(request: Request) -> OptimizationAgent:
    return request.app.state.optimization_agent
