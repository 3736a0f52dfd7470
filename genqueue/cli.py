"""
genqueue CLI commands

This module provides command-line interface for genqueue operations.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml

from genqueue import configure_logging
from genqueue.config.genqueue_config import GenQueueConfig
from genqueue.documents import DocumentPipeline, SubjectData, TargetContext
from genqueue.exceptions import ConfigurationError, GenQueueError
from genqueue.providers import GenerationRequest, HTTPGenerationProvider
from genqueue.services import GenerationQueueService

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _load_yaml(path: Optional[str]) -> Optional[Dict[str, Any]]:
    if not path:
        return None
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a mapping")
    return data


def _prepare(config_path: Optional[str], log_level: Optional[str]) -> GenQueueConfig:
    try:
        config = GenQueueConfig.from_file(config_path) if config_path else GenQueueConfig()
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    configure_logging(level=log_level)
    return config


def _provider(config: GenQueueConfig, base_url: Optional[str]) -> HTTPGenerationProvider:
    try:
        return HTTPGenerationProvider.from_config(config.get_provider_config(), base_url=base_url)
    except ValueError as e:
        raise click.ClickException(f"{e}. Use --base-url or set provider.base_url.")


@click.group()
def cli():
    """genqueue command-line interface"""
    pass


@cli.command('config-show')
@click.option('--config', 'config_path', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS), help='Logging level')
def config_show(config_path, log_level):
    """Print the effective configuration"""
    config = _prepare(config_path, log_level)
    click.echo(yaml.safe_dump(config.get_all(), default_flow_style=False, sort_keys=False))


@cli.command()
@click.option('--section', required=True, help='Section or task name, e.g. "PROFESSIONAL SUMMARY"')
@click.option('--subject', 'subject_path', required=True, type=click.Path(exists=True), help='YAML/JSON file with subject data')
@click.option('--target', 'target_path', type=click.Path(exists=True), help='YAML/JSON file with target context')
@click.option('--operation', type=click.Choice(['generate', 'improve', 'expand', 'rewrite']), default='generate')
@click.option('--base-url', help='Provider base URL')
@click.option('--max-retries', type=int, help='Retries after the first failed attempt')
@click.option('--timeout', type=float, help='Seconds to wait for the result')
@click.option('--config', 'config_path', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS), help='Logging level')
def generate(section, subject_path, target_path, operation, base_url, max_retries, timeout, config_path, log_level):
    """Generate a single section and print it"""
    config = _prepare(config_path, log_level)
    request = GenerationRequest(
        section=section,
        subject=_load_yaml(subject_path),
        target=_load_yaml(target_path),
        operation=operation
    )

    async def run():
        service = GenerationQueueService(_provider(config, base_url), config=config)
        try:
            job_id = await service.add_task(request, max_retries=max_retries)
            return await service.wait_for_job(job_id, timeout)
        finally:
            await service.close()

    try:
        result = asyncio.run(run())
    except GenQueueError as e:
        raise click.ClickException(str(e))

    if not result.success:
        raise click.ClickException(f"Generation failed: {result.error}")
    click.echo(result.data)


@cli.command()
@click.option('--subject', 'subject_path', required=True, type=click.Path(exists=True), help='YAML/JSON file with subject data')
@click.option('--target', 'target_path', type=click.Path(exists=True), help='YAML/JSON file with target context')
@click.option('--base-url', help='Provider base URL')
@click.option('--max-retries', type=int, help='Retries per section')
@click.option('--output', type=click.Path(), help='Write the run as YAML to this file')
@click.option('--config', 'config_path', type=click.Path(exists=True), help='Path to configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS), help='Logging level')
def document(subject_path, target_path, base_url, max_retries, output, config_path, log_level):
    """Generate every section of a document"""
    config = _prepare(config_path, log_level)
    try:
        subject = SubjectData.from_dict(_load_yaml(subject_path))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--subject')
    target_data = _load_yaml(target_path)
    target = TargetContext.from_dict(target_data) if target_data else None

    async def run():
        pipeline = DocumentPipeline(_provider(config, base_url), config=config)
        try:
            return await pipeline.generate_document(subject, target, max_retries=max_retries)
        finally:
            await pipeline.close()

    try:
        pipeline_run = asyncio.run(run())
    except GenQueueError as e:
        raise click.ClickException(str(e))

    if output:
        with open(Path(output), 'w') as f:
            yaml.safe_dump(pipeline_run.to_dict(), f, default_flow_style=False, sort_keys=False)
        click.echo(f"Wrote {len(pipeline_run.sections)} sections to {output}")
    else:
        for section in pipeline_run.sections:
            click.echo(f"== {section.title}")
            click.echo(section.content if section.success else f"[failed] {section.error}")
            click.echo()

    click.echo(
        f"Sections: {len(pipeline_run.sections)}, "
        f"tokens: {pipeline_run.total_tokens}, "
        f"time: {pipeline_run.total_time:.2f}s"
    )
    if not pipeline_run.success:
        for error in pipeline_run.errors:
            click.echo(f"Error: {error}", err=True)
        raise SystemExit(1)


if __name__ == '__main__':
    cli()
