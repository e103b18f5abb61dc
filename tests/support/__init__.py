"""Sandbox helpers shared by the test suite.

``PromptSandbox`` lays out a project root, an isolated home directory, a user
config directory, and any number of layer directories under ``tmp_path``. The
``env`` mapping points :class:`DefaultPathResolver` at those directories so no
test ever touches the real home.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from lib_layered_prompts.adapters.path_resolvers.default import DefaultPathResolver
from lib_layered_prompts.application.deploy import DeployOptions
from lib_layered_prompts.domain.models import Target
from lib_layered_prompts.domain.settings import LayerSettings


def asset_text(description: str, body: str, **meta: object) -> str:
    """Render an asset source file with frontmatter."""

    lines = ["---", f"description: {description}"]
    for key, value in meta.items():
        name = key.replace("_", "-")
        if isinstance(value, (list, tuple)):
            lines.append(f"{name}: [{', '.join(str(item) for item in value)}]")
        else:
            lines.append(f"{name}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n" + body


@dataclass
class PromptSandbox:
    root: Path
    project: Path
    home: Path
    config_dir: Path
    env: dict[str, str] = field(default_factory=dict)

    @property
    def project_layer(self) -> Path:
        return self.project / ".promptpack"

    @property
    def user_layer(self) -> Path:
        return self.config_dir / ".promptpack"

    def layer(self, name: str) -> Path:
        """Return (and create) an additional layer directory outside the project."""

        path = self.root / "layers" / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write(self, layer: Path, relative: str, content: str | bytes) -> Path:
        path = layer / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    def write_asset(self, layer: Path, relative: str, description: str, body: str, **meta: object) -> Path:
        return self.write(layer, relative, asset_text(description, body, **meta))

    def resolver(self) -> DefaultPathResolver:
        return DefaultPathResolver(env=self.env, platform="linux")

    def options(
        self,
        *,
        targets: tuple[Target, ...] = (Target.CLAUDE_CODE, Target.CURSOR, Target.CODEX),
        additional: tuple[Path, ...] = (),
        use_user_layer: bool = True,
        **flags: object,
    ) -> DeployOptions:
        layers = LayerSettings(
            user_layer=self.user_layer,
            additional=additional,
            use_user_layer=use_user_layer,
        )
        return DeployOptions(project_root=self.project, layers=layers, targets=targets, **flags)  # type: ignore[arg-type]

    def read(self, relative: str) -> str:
        return (self.project / relative).read_text(encoding="utf-8")


def create_prompt_sandbox(tmp_path: Path) -> PromptSandbox:
    project = tmp_path / "project"
    home = tmp_path / "home"
    config_dir = tmp_path / "config"
    for directory in (project / ".promptpack", home, config_dir):
        directory.mkdir(parents=True, exist_ok=True)
    env = {
        "LIB_LAYERED_PROMPTS_HOME": str(home),
        "LIB_LAYERED_PROMPTS_CONFIG_DIR": str(config_dir),
        "XDG_CONFIG_HOME": str(tmp_path / "xdg"),
    }
    return PromptSandbox(root=tmp_path, project=project, home=home, config_dir=config_dir, env=env)


__all__ = ["PromptSandbox", "asset_text", "create_prompt_sandbox"]
