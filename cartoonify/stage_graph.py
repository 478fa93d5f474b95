"""The cartoon recipe as a small graph of named stages.

Both executors (`cpu_pipeline` and `gpu_pipeline`) consume the same graph:
the CPU one walks it in order over an image stack, the GPU one launches one
kernel per stage and waits only on each stage's declared predecessors.
"""
from __future__ import annotations

import heapq
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Set, Tuple

import numpy as np

from cartoonify import passes
from cartoonify.config import ProcessingConfig
from cartoonify.converters import WHITE
from cartoonify.enums import PipelineState

SOURCE = "original"

StageFn = Callable[[List[np.ndarray], int, int, ProcessingConfig], np.ndarray]
ParamFn = Callable[[ProcessingConfig], Tuple[int, ...]]


@dataclass(frozen=True)
class Stage:
    """One step of the recipe.

    inputs: names of the images this stage reads, in argument order; SOURCE is
        the original photo.
    kernel_name: OpenCL kernel implementing the stage. Kernels take the input
        buffers, the output buffer, width, height, then `params(config)`.
    state: pipeline state reached once the stage's image is pushed.
    fresh_source: the sequential recipe pushes a copy of the original before
        running this stage, so it reads the photo from the top of the stack.
    """
    name: str
    inputs: Tuple[str, ...]
    kernel_name: str
    state: PipelineState
    compute: StageFn = field(compare=False, repr=False)
    params: ParamFn = field(default=lambda config: (), compare=False, repr=False)
    fresh_source: bool = False

    @property
    def dependencies(self) -> Tuple[str, ...]:
        return tuple(i for i in self.inputs if i != SOURCE)


def build_dependency_graph(stages: Iterable[Stage]) -> Dict[str, Set[str]]:
    stages = list(stages)
    names = {s.name for s in stages}
    dependencies: Dict[str, Set[str]] = {}
    for stage in stages:
        for dep in stage.dependencies:
            if dep not in names:
                raise ValueError(f"Stage '{stage.name}' depends on unknown stage '{dep}'")
        dependencies[stage.name] = set(stage.dependencies)
    return dependencies


def topological_sort(stages: List[Stage], dependencies: Dict[str, Set[str]]) -> List[str]:
    """Order stages so each follows its dependencies.

    Among stages that are ready at the same time, the one declared first runs
    first, so a recipe declared in a valid order keeps that order.
    """
    position = {s.name: i for i, s in enumerate(stages)}
    in_degree = {s.name: len(dependencies.get(s.name, ())) for s in stages}
    adj_list: Dict[str, List[str]] = defaultdict(list)
    for name, deps in dependencies.items():
        for dep in deps:
            adj_list[dep].append(name)

    ready = [position[n] for n, d in in_degree.items() if d == 0]
    heapq.heapify(ready)
    ordered: List[str] = []
    while ready:
        current = stages[heapq.heappop(ready)].name
        ordered.append(current)
        for neighbor in adj_list.get(current, []):
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                heapq.heappush(ready, position[neighbor])

    if len(ordered) != len(stages):
        raise ValueError("Circular dependency detected in stages")
    return ordered


class StageGraph:
    def __init__(self, stages: Iterable[Stage]):
        self._stages: Dict[str, Stage] = {}
        for stage in stages:
            if stage.name in self._stages or stage.name == SOURCE:
                raise ValueError(f"Duplicate stage name '{stage.name}'")
            self._stages[stage.name] = stage
        self._dependencies = build_dependency_graph(self._stages.values())
        self._order = topological_sort(list(self._stages.values()), self._dependencies)

    def __getitem__(self, name: str) -> Stage:
        return self._stages[name]

    def __iter__(self):
        return (self._stages[n] for n in self._order)

    def __len__(self) -> int:
        return len(self._stages)

    def order(self) -> List[str]:
        return list(self._order)

    def predecessors(self, name: str) -> Set[str]:
        return set(self._dependencies[name])

    def successors(self, name: str) -> Set[str]:
        return {n for n, deps in self._dependencies.items() if name in deps}

    @property
    def terminal(self) -> Stage:
        """The one stage nothing else depends on."""
        sinks = [n for n in self._order if not self.successors(n)]
        if len(sinks) != 1:
            raise ValueError(f"Stage graph must have exactly one final stage, found {sinks}")
        return self._stages[sinks[0]]

    def lanes(self) -> Dict[str, int]:
        """Assign every stage to an execution lane (command queue).

        A stage continues the lane of its first dependency unless another
        stage already did; anything else starts a new lane. Stages on the same
        lane run in submission order, so chains need no extra barriers.
        """
        lanes: Dict[str, int] = {}
        continued: Set[str] = set()
        count = 0
        for name in self._order:
            deps = self._stages[name].dependencies
            if deps and deps[0] not in continued:
                lanes[name] = lanes[deps[0]]
                continued.add(deps[0])
            else:
                lanes[name] = count
                count += 1
        return lanes


def _blur(images, width, height, config):
    return passes.gaussian_blur(images[0], width, height)


def _edges(images, width, height, config):
    return passes.sobel_edge_detect(images[0], width, height, config.edge_threshold)


def _quantize(images, width, height, config):
    return passes.reduce_colours(images[0], config.num_colours)


def _merge(images, width, height, config):
    return passes.merge_mask(images[0], WHITE, images[1])


def cartoon_graph() -> StageGraph:
    """blur -> edges; quantize on its own; merge paints the colours inside the white of the edge mask."""
    return StageGraph([
        Stage("blur", (SOURCE,), "gaussianBlur", PipelineState.BLURRED, _blur),
        Stage("edges", ("blur",), "sobelEdgeDetect", PipelineState.EDGES, _edges,
              params=lambda config: (config.edge_threshold,)),
        Stage("quantize", (SOURCE,), "reduceColours", PipelineState.QUANTIZED, _quantize,
              params=lambda config: (config.num_colours,), fresh_source=True),
        Stage("merge", ("edges", "quantize"), "mergeMask", PipelineState.MERGED, _merge,
              params=lambda config: (WHITE,)),
    ])
