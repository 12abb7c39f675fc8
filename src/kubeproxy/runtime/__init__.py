"""Process supervision for the tunnel and edge proxy."""

from kubeproxy.runtime.supervisor import ProcessSupervisor, check_dependencies

__all__ = ["ProcessSupervisor", "check_dependencies"]
