"""Eligibility classification over text-generation vendors."""
from .prompt_loader import PromptLoader, get_prompt_loader
from .classifier_gateway import (
    Classifier,
    ClassifierGateway,
    ClassifierJudgement,
    TextGenerationError,
    TextGenerator,
    format_patient_facts,
    parse_judgement,
)
from .fake_classifier import FakeClassifier, ScriptedTextGenerator
from .llm_gateway import ProviderNotConfigured, create_classifier, create_text_generator

__all__ = [
    "PromptLoader",
    "get_prompt_loader",
    "Classifier",
    "ClassifierGateway",
    "ClassifierJudgement",
    "TextGenerationError",
    "TextGenerator",
    "format_patient_facts",
    "parse_judgement",
    "FakeClassifier",
    "ScriptedTextGenerator",
    "ProviderNotConfigured",
    "create_classifier",
    "create_text_generator",
]
