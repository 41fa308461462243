from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from jinja2 import Environment, TemplateError, meta

from .exceptions import PromptTemplateError

_ENVIRONMENT = Environment()


class PromptTemplate:
    """A jinja2 prompt template with ``{{name}}`` placeholders.

    Every variable the template reads is required unless it is listed in
    ``optional_parameters``; missing optional variables render as an empty
    string.
    """

    def __init__(self, template: str, name: str = "template",
                 optional_parameters: Optional[Iterable[str]] = None):
        if not isinstance(template, str) or not template.strip():
            raise PromptTemplateError("Template cannot be empty", name)
        self.name = name
        self.template = template
        self.optional_parameters = tuple(optional_parameters or ())

        try:
            undeclared = meta.find_undeclared_variables(_ENVIRONMENT.parse(template))
            self._compiled = _ENVIRONMENT.from_string(template)
        except TemplateError as e:
            raise PromptTemplateError(f"Invalid template: {e}", name) from e

        # keep first-seen order; find_undeclared_variables returns a set
        ordered: List[str] = []
        for _, token_type, value in _ENVIRONMENT.lex(template):
            if token_type == "name" and value in undeclared and value not in ordered:
                ordered.append(value)
        self.parameters = tuple(ordered)
        self.required_parameters = tuple(p for p in ordered if p not in self.optional_parameters)

    def validate_parameters(self, parameters: Mapping[str, Any]):
        if not isinstance(parameters, Mapping):
            raise PromptTemplateError("Parameters must be a mapping", self.name)

        for required in self.required_parameters:
            if required not in parameters:
                raise PromptTemplateError(f"Missing required parameter: {required}", self.name, required)

        for param_name, value in parameters.items():
            if param_name not in self.parameters and param_name not in self.optional_parameters:
                raise PromptTemplateError(f"Unknown parameter: {param_name}", self.name, param_name)
            if param_name in self.required_parameters and value is not None and not str(value).strip():
                raise PromptTemplateError(f"Required parameter cannot be empty: {param_name}", self.name, param_name)

    def render(self, parameters: Mapping[str, Any]) -> str:
        self.validate_parameters(parameters)
        values = {key: ("" if value is None else value) for key, value in parameters.items()}
        try:
            return self._compiled.render(**values).strip()
        except TemplateError as e:
            raise PromptTemplateError(f"Failed to render template: {e}", self.name) from e

    def render_all(self, parameter_sets: Sequence[Mapping[str, Any]]) -> List[str]:
        """Render one prompt per parameter set, in order."""
        return [self.render(params) for params in parameter_sets]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromptTemplate":
        if not isinstance(data, dict) or "template" not in data:
            raise PromptTemplateError("Prompt template must be a dictionary with a 'template' key")
        return cls(
            data["template"],
            name=data.get("name", "template"),
            optional_parameters=data.get("optional", [])
        )

    def __repr__(self):
        return (
            f"PromptTemplate(name='{self.name}', required={list(self.required_parameters)}, "
            f"optional={list(self.optional_parameters)})"
        )


def expand_prompt_template(data: Dict[str, Any]) -> List[str]:
    """Render a ``{template, optional, parameters}`` block into a list of prompts."""
    template = PromptTemplate.from_dict(data)
    parameter_sets = data.get("parameters") or [{}]
    if not isinstance(parameter_sets, list):
        raise PromptTemplateError("'parameters' must be a list of dictionaries", template.name)
    return template.render_all(parameter_sets)
