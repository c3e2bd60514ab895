"""The KUBE meta-model and its bootstrap.

The CMDB validates every item and link against item types, link types and
link rules.  ``ensure_model`` makes sure they exist before the first event is
processed; it submits the whole model as one batch to the ``data``
collection when the model key is not found.
"""

from __future__ import annotations

import structlog

from oxkube.cmdb.client import CMDB
from oxkube.errors import ModelBootstrapError, TransportError
from oxkube.models.cmdb import ItemType, LinkRule, LinkType, Model, ModelData, Result
from oxkube.sync.keys import link_key

_log = structlog.get_logger(component="sync.model")

K8S_MODEL = "KUBE"
K8S_CLUSTER = "K8SCluster"
K8S_NAMESPACE = "K8SNamespace"
K8S_RESOURCE_QUOTA = "K8SResourceQuota"
K8S_POD = "K8SPod"
K8S_SERVICE = "K8SService"
K8S_INGRESS = "K8SIngress"
K8S_REPLICATION_CONTROLLER = "K8SReplicationController"
K8S_PERSISTENT_VOLUME = "K8SPersistentVolume"
K8S_LINK = "K8SLink"


def _rule(start: str, end: str, name: str, description: str) -> LinkRule:
    return LinkRule(
        key=link_key(start, end),
        name=name,
        description=description,
        link_type=K8S_LINK,
        start_item_type=start,
        end_item_type=end,
    )


def kube_model() -> ModelData:
    """Return the declarative KUBE meta-model."""
    return ModelData(
        models=(
            Model(
                key=K8S_MODEL,
                name="Kubernetes Resource Model",
                description="Defines the item and link types that describe Kubernetes resources in a given Namespace.",
            ),
        ),
        item_types=(
            ItemType(
                key=K8S_CLUSTER,
                name="Kubernetes Cluster",
                description=(
                    "An open-source system for automating deployment, scaling, "
                    "and management of containerized applications."
                ),
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_NAMESPACE,
                name="Namespace",
                description=(
                    "A way to divide cluster resources between multiple users or teams "
                    "providing virtual areas to deploy project resources."
                ),
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_RESOURCE_QUOTA,
                name="Resource Quota",
                description="A set of constraints that limit aggregate resource consumption per namespace.",
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_POD,
                name="Pod",
                description=(
                    "Encapsulates an application's container (or, in some cases, multiple containers), "
                    "storage resources, a unique network IP, and options that govern how the "
                    "container(s) should run."
                ),
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_SERVICE,
                name="Service",
                description="Exposes an application running on a set of Pods as a network service.",
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_INGRESS,
                name="Ingress (Route)",
                description=(
                    "Exposes HTTP and HTTPS routes from outside the cluster to services within the cluster.\n"
                    "Traffic routing is controlled by rules defined on the Ingress resource."
                ),
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_REPLICATION_CONTROLLER,
                name="Replication Controller",
                description="Ensures that a specified number of pod replicas are running at any one time.",
                model=K8S_MODEL,
            ),
            ItemType(
                key=K8S_PERSISTENT_VOLUME,
                name="Persistent Volume",
                description="A piece of storage in the cluster against which claims can be made by pods.",
                model=K8S_MODEL,
            ),
        ),
        link_types=(
            LinkType(
                key=K8S_LINK,
                name="Kubernetes Resource Link Type",
                description="Links Kubernetes resources.",
                model=K8S_MODEL,
            ),
        ),
        link_rules=(
            _rule(K8S_CLUSTER, K8S_NAMESPACE, "K8S Cluster to Namespace Rule",
                  "A cluster contains one or more namespaces."),
            _rule(K8S_NAMESPACE, K8S_RESOURCE_QUOTA, "K8S Namespace to Resource Quota Rule",
                  "A namespace has a resource quota."),
            _rule(K8S_NAMESPACE, K8S_POD, "K8S Namespace to Pod Rule",
                  "A namespace contains one or more pods."),
            _rule(K8S_POD, K8S_PERSISTENT_VOLUME, "K8S Pod to Persistent Volume Rule",
                  "A pod uses one or more persistent volumes."),
            _rule(K8S_POD, K8S_REPLICATION_CONTROLLER, "K8S Pod to Replication Controller Rule",
                  "A pod is controlled by a replication controller."),
            _rule(K8S_POD, K8S_SERVICE, "K8S Pod to Service Rule",
                  "A pod is accessed by a service."),
            _rule(K8S_SERVICE, K8S_INGRESS, "K8S Service to Ingress Rule",
                  "A service is published via an Ingress route."),
        ),
    )


async def model_exists(cmdb: CMDB) -> bool:
    """Return True if the KUBE model is already defined in the CMDB."""
    return await cmdb.get("model", K8S_MODEL) is not None


async def ensure_model(cmdb: CMDB) -> Result | None:
    """Create the KUBE meta-model unless it already exists.

    Returns the Result of the batch submission, or None if the model was
    already present.

    Raises:
        ModelBootstrapError: if the lookup or the submission fails.  The
            process must not accept events without its meta-model.
    """
    _log.debug("checking if the kube meta-model is defined")
    try:
        if await model_exists(cmdb):
            _log.info("kube meta-model found")
            return None
        _log.info("kube meta-model not defined, creating it")
        result = await cmdb.put(kube_model(), "data")
    except TransportError as exc:
        _log.error("kube_model_bootstrap_failed", error=str(exc))
        raise ModelBootstrapError(f"failed to create the KUBE meta-model: {exc}") from exc

    if result.error:
        _log.error("kube_model_rejected", message=result.message)
        raise ModelBootstrapError(f"the CMDB rejected the KUBE meta-model: {result.message}")
    _log.info("kube meta-model created", changed=result.changed)
    return result
