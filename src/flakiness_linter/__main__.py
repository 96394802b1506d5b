"""Package entry point - composition root. Wire dependencies and run the CLI app."""

from flakiness_linter.infrastructure.di.container import FlakinessContainer
from flakiness_linter.interface.cli import CLIAppFactory, CLIDependencies


def main() -> None:
    """Entry point: wire dependencies at composition root, create app, run."""
    container = FlakinessContainer()

    deps = CLIDependencies(
        config_provider=container.get_analysis_config,
        telemetry=container.get_telemetry_port(),
        registry=container.get_rule_registry(),
        parser=container.get_parser(),
        filesystem=container.get_filesystem_gateway(),
        reporter=container.get_reporter(),
        json_reporter=container.get_json_reporter(),
    )

    app = CLIAppFactory.create_app(deps)
    app()


if __name__ == "__main__":
    main()
