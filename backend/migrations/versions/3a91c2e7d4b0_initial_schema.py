"""Initial schema: identities, usuarios, expedientes, sesiones, avances, galerias

Revision ID: 3a91c2e7d4b0
Revises:
Create Date: 2026-10-19 10:12:31.402118
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a91c2e7d4b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'identities',
        sa.Column('uid', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('custom_claims', sa.JSON(), nullable=False),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('uid'),
    )
    op.create_index('ix_identities_email', 'identities', ['email'], unique=True)

    op.create_table(
        'usuarios',
        sa.Column('uid', sa.String(length=32), nullable=False),
        sa.Column('nombre', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('rol', sa.String(), nullable=False),
        sa.Column('fecha_registro', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint("rol in ('terapeuta','paciente')", name='ck_usuarios_rol'),
        sa.ForeignKeyConstraint(['uid'], ['identities.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('uid'),
    )
    op.create_index('idx_usuarios_rol', 'usuarios', ['rol'])

    op.create_table(
        'informacion_medica',
        sa.Column('uid', sa.String(length=32), nullable=False),
        sa.Column('contacto_emergencia_nombre', sa.String(), nullable=True),
        sa.Column('contacto_emergencia_telefono', sa.String(), nullable=True),
        sa.Column('historial_medico', sa.Text(), nullable=True),
        sa.Column('alergias', sa.Text(), nullable=True),
        sa.Column('medicamentos', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('uid'),
    )

    op.create_table(
        'expedientes',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('paciente_uid', sa.String(length=32), nullable=False),
        sa.Column('terapeuta_uid', sa.String(length=32), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=False),
        sa.Column('diagnostico', sa.Text(), nullable=True),
        sa.Column('objetivos', sa.Text(), nullable=True),
        sa.Column('plan_tratamiento', sa.Text(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['paciente_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['terapeuta_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_expedientes_paciente', 'expedientes', ['paciente_uid'])
    op.create_index('idx_expedientes_terapeuta', 'expedientes', ['terapeuta_uid'])

    op.create_table(
        'sesiones',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('expediente_id', sa.String(length=32), nullable=False),
        sa.Column('terapeuta_uid', sa.String(length=32), nullable=False),
        sa.Column('paciente_uid', sa.String(length=32), nullable=False),
        sa.Column('fecha', sa.DateTime(timezone=True), nullable=False),
        sa.Column('modalidad', sa.String(), nullable=False),
        sa.Column('ubicacion', sa.String(), nullable=True),
        sa.Column('nota', sa.Text(), nullable=True),
        sa.Column('estado', sa.String(), nullable=False),
        sa.Column('creada_en', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('notas_terapeuta', sa.Text(), nullable=True),
        sa.Column('dolor_inicial', sa.Integer(), nullable=True),
        sa.Column('dolor_final', sa.Integer(), nullable=True),
        sa.Column('observaciones_objetivas', sa.Text(), nullable=True),
        sa.Column('tecnicas_aplicadas', sa.Text(), nullable=True),
        sa.Column('plan_proxima_sesion', sa.Text(), nullable=True),
        sa.Column('progreso_percibido', sa.String(), nullable=True),
        sa.Column('estado_animo_observado', sa.String(), nullable=True),
        sa.Column('completada_en', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("estado in ('agendada','completada','cancelada')", name='ck_sesiones_estado'),
        sa.CheckConstraint("modalidad in ('presencial','virtual')", name='ck_sesiones_modalidad'),
        sa.CheckConstraint(
            'dolor_inicial is null or (dolor_inicial between 0 and 10)', name='ck_sesiones_dolor_inicial'
        ),
        sa.CheckConstraint('dolor_final is null or (dolor_final between 0 and 10)', name='ck_sesiones_dolor_final'),
        sa.ForeignKeyConstraint(['expediente_id'], ['expedientes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['paciente_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['terapeuta_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_sesiones_expediente', 'sesiones', ['expediente_id'])
    op.create_index('idx_sesiones_paciente', 'sesiones', ['paciente_uid'])
    op.create_index('idx_sesiones_terapeuta', 'sesiones', ['terapeuta_uid'])

    op.create_table(
        'avances',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('paciente_uid', sa.String(length=32), nullable=False),
        sa.Column('terapeuta_uid', sa.String(length=32), nullable=False),
        sa.Column('expediente_id', sa.String(length=32), nullable=False),
        sa.Column('fecha_registro', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('registrado_por', sa.String(length=32), nullable=False),
        sa.Column('tipo_registro', sa.String(), nullable=False),
        sa.Column('dolor_inicial', sa.Integer(), nullable=True),
        sa.Column('dolor_final', sa.Integer(), nullable=True),
        sa.Column('ubicacion_dolor', sa.Text(), nullable=True),
        sa.Column('ejercicios_realizados', sa.Text(), nullable=True),
        sa.Column('dias_ejercicio', sa.Integer(), nullable=True),
        sa.Column('ejercicios_dificiles', sa.Text(), nullable=True),
        sa.Column('movilidad_percibida', sa.Text(), nullable=True),
        sa.Column('fatiga', sa.Integer(), nullable=True),
        sa.Column('limitaciones_funcionales', sa.Text(), nullable=True),
        sa.Column('estado_animo', sa.String(), nullable=True),
        sa.Column('motivacion', sa.Integer(), nullable=True),
        sa.Column('comentario_paciente', sa.Text(), nullable=True),
        sa.CheckConstraint("tipo_registro in ('auto','sesion')", name='ck_avances_tipo'),
        sa.CheckConstraint('dias_ejercicio is null or (dias_ejercicio between 0 and 7)', name='ck_avances_dias'),
        sa.ForeignKeyConstraint(['expediente_id'], ['expedientes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['paciente_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['terapeuta_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_avances_expediente', 'avances', ['expediente_id'])
    op.create_index('idx_avances_paciente', 'avances', ['paciente_uid'])
    op.create_index('idx_avances_terapeuta', 'avances', ['terapeuta_uid'])

    op.create_table(
        'galerias',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('nombre', sa.String(), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=False),
        sa.Column('creada_por', sa.String(length=32), nullable=False),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['creada_por'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_galerias_creada_por', 'galerias', ['creada_por'])

    op.create_table(
        'galeria_videos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('galeria_id', sa.String(length=32), nullable=False),
        sa.Column('posicion', sa.Integer(), nullable=False),
        sa.Column('titulo', sa.String(), nullable=False),
        sa.Column('youtube_url', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['galeria_id'], ['galerias.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'galeria_pacientes',
        sa.Column('galeria_id', sa.String(length=32), nullable=False),
        sa.Column('paciente_uid', sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(['galeria_id'], ['galerias.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['paciente_uid'], ['usuarios.uid'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('galeria_id', 'paciente_uid'),
    )
    op.create_index('idx_galeria_pacientes_paciente', 'galeria_pacientes', ['paciente_uid'])


def downgrade() -> None:
    op.drop_index('idx_galeria_pacientes_paciente', table_name='galeria_pacientes')
    op.drop_table('galeria_pacientes')
    op.drop_table('galeria_videos')
    op.drop_index('idx_galerias_creada_por', table_name='galerias')
    op.drop_table('galerias')
    op.drop_index('idx_avances_terapeuta', table_name='avances')
    op.drop_index('idx_avances_paciente', table_name='avances')
    op.drop_index('idx_avances_expediente', table_name='avances')
    op.drop_table('avances')
    op.drop_index('idx_sesiones_terapeuta', table_name='sesiones')
    op.drop_index('idx_sesiones_paciente', table_name='sesiones')
    op.drop_index('idx_sesiones_expediente', table_name='sesiones')
    op.drop_table('sesiones')
    op.drop_index('idx_expedientes_terapeuta', table_name='expedientes')
    op.drop_index('idx_expedientes_paciente', table_name='expedientes')
    op.drop_table('expedientes')
    op.drop_table('informacion_medica')
    op.drop_index('idx_usuarios_rol', table_name='usuarios')
    op.drop_table('usuarios')
    op.drop_index('ix_identities_email', table_name='identities')
    op.drop_table('identities')
