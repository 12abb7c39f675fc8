from kubeproxy.cli import cli

cli()
