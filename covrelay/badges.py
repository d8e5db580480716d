"""Coverage badge references for each component."""

from dataclasses import dataclass
from pathlib import Path

from covrelay.logging import get_logger
from covrelay.models import Badge

logger = get_logger("badges")


@dataclass(frozen=True)
class BadgeTemplate:
    """Fixed badge template, parameterised only by component identifier."""

    repository: str
    service_host: str = "coveralls.io"
    branch: str = "main"
    label: str = "Coverage Status"
    forge: str = "github"

    def image_url(self, component_identifier: str) -> str:
        return (
            f"https://{self.service_host}/repos/{self.forge}/{self.repository}/"
            f"{component_identifier}/badge.svg?branch={self.branch}"
        )

    def link_url(self, component_identifier: str) -> str:
        return (
            f"https://{self.service_host}/{self.forge}/{self.repository}/"
            f"{component_identifier}?branch={self.branch}"
        )

    def markdown(self, component_identifier: str) -> str:
        """Badge image wrapped in a link to the component's coverage page."""
        return (
            f"[![{self.label}]({self.image_url(component_identifier)})]"
            f"({self.link_url(component_identifier)})"
        )


class BadgeWriter:
    """Writes `<component>.md` badge files into a directory."""

    def __init__(self, template: BadgeTemplate, output_dir: Path = Path(".")):
        self.template = template
        self.output_dir = output_dir

    def artifact_path(self, component_identifier: str) -> Path:
        return self.output_dir / f"{component_identifier}.md"

    def build(self, component_identifier: str) -> Badge:
        """Build a badge without writing it."""
        return Badge(
            component_identifier=component_identifier,
            url=self.template.image_url(component_identifier),
            markdown=self.template.markdown(component_identifier),
            artifact_path=self.artifact_path(component_identifier),
        )

    def emit(self, component_identifier: str) -> Badge:
        """Write the badge file, replacing any previous content."""
        badge = self.build(component_identifier)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        badge.artifact_path.write_text(badge.markdown + "\n", encoding="utf-8")
        logger.info("[%s] badge saved in %s", component_identifier, badge.artifact_path)
        return badge


__all__ = ["BadgeTemplate", "BadgeWriter"]
