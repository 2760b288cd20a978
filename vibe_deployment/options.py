from pathlib import Path

import click

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Filepath of the deployment parameters YAML",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

tag_option = click.option(
    "--tag",
    "-t",
    "tags",
    help="Only deploy units with this tag (and their dependencies); repeatable",
    multiple=True,
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without prompting",
    is_flag=True,
    default=False,
)

dry_run_option = click.option(
    "--dry-run",
    help="Print the deployment plan without sending transactions",
    is_flag=True,
    default=False,
)
